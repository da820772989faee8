from __future__ import annotations

MAX_FILE_SIZE = 5 * 1024 * 1024

_SCREENSHOT_MARKERS = ("Screenshot", "Screen Shot")


def is_candidate(name: str) -> bool:
    """Return True for ``.png`` names (any case) containing a screenshot marker.

    The marker match is a literal, case-sensitive substring test.
    """

    if not name.lower().endswith(".png"):
        return False
    return any(marker in name for marker in _SCREENSHOT_MARKERS)


def within_size_limit(size: int, limit: int = MAX_FILE_SIZE) -> bool:
    return size <= limit


__all__ = ["MAX_FILE_SIZE", "is_candidate", "within_size_limit"]
