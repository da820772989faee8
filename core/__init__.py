"""Shared infrastructure: working directory, settings and logging."""
