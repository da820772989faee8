"""Local HTTP API for SmartDump."""

__version__ = "0.1.0"
