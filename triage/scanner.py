"""Directory scanning for screenshot candidates."""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import ScanError
from .events import FILE_SKIPPED, SCAN_SUMMARY, SCAN_UNREADABLE, NotificationSink
from .filters import MAX_FILE_SIZE, is_candidate
from .types import Candidate, FolderEntry, FolderInfo, ScanResult, SkipRecord

LOGGER = logging.getLogger("smartdump.triage.scanner")


def _open_dir(directory: Path) -> List[os.DirEntry[str]]:
    try:
        with os.scandir(directory) as entries:
            return list(entries)
    except OSError as exc:
        raise ScanError(f"Could not read directory {directory}: {exc.strerror or exc}") from exc


def scan_directory(
    directory: str | os.PathLike[str],
    *,
    sink: Optional[NotificationSink] = None,
    max_file_size: int = MAX_FILE_SIZE,
    selected: Optional[Iterable[str]] = None,
) -> ScanResult:
    """Partition the direct children of *directory* into candidates and skips.

    With *selected*, only files whose absolute path is listed are kept, so the
    published summary counts exactly the candidates that will be dispatched.
    Nothing is published when the directory cannot be opened.
    """

    root = Path(directory)
    wanted = None if selected is None else {str(Path(item).absolute()) for item in selected}
    entries = _open_dir(root)
    result = ScanResult(directory=root)
    for entry in entries:
        try:
            if not entry.is_file():
                continue
        except OSError as exc:
            result.unreadable += 1
            LOGGER.warning("scan: cannot read type of %s: %s", entry.name, exc)
            continue
        if not is_candidate(entry.name):
            continue
        absolute = Path(entry.path).absolute()
        if wanted is not None and str(absolute) not in wanted:
            continue
        try:
            size = entry.stat().st_size
        except OSError as exc:
            result.unreadable += 1
            LOGGER.warning("scan: cannot read metadata of %s: %s", entry.name, exc)
            continue
        if size > max_file_size:
            LOGGER.info("scan: skipping %s (%d bytes) - exceeds size limit", entry.name, size)
            result.skipped.append(SkipRecord(name=entry.name, size=size))
        else:
            result.candidates.append(Candidate(path=absolute, name=entry.name, size=size))

    LOGGER.info(
        "scan: %s -> %d candidates, %d skipped, %d unreadable",
        root,
        len(result.candidates),
        len(result.skipped),
        result.unreadable,
    )
    if sink is not None:
        for record in result.skipped:
            sink.publish(FILE_SKIPPED, record)
        sink.publish(SCAN_SUMMARY, len(result.candidates))
        if result.unreadable:
            sink.publish(SCAN_UNREADABLE, result.unreadable)
    return result


def list_candidates(directory: str | os.PathLike[str], *, max_file_size: int = MAX_FILE_SIZE) -> List[FolderEntry]:
    """Screenshot files in *directory* sorted by name, flagged by size validity."""

    root = Path(directory)
    if not root.is_dir():
        raise ScanError("Directory does not exist")
    files: List[FolderEntry] = []
    for entry in _open_dir(root):
        try:
            if not entry.is_file() or not is_candidate(entry.name):
                continue
        except OSError:
            continue
        try:
            size = entry.stat().st_size
        except OSError:
            size = 0
        files.append(
            FolderEntry(
                path=str(Path(entry.path).absolute()),
                name=entry.name,
                size=size,
                is_valid=size <= max_file_size,
            )
        )
    files.sort(key=lambda item: item.name)
    return files


def list_subfolders(directory: str | os.PathLike[str]) -> List[FolderInfo]:
    root = Path(directory)
    if not root.is_dir():
        raise ScanError("Directory does not exist")
    folders: List[FolderInfo] = []
    for entry in _open_dir(root):
        if entry.name.startswith("."):
            continue
        try:
            if not entry.is_dir():
                continue
        except OSError:
            continue
        folders.append(FolderInfo(path=str(Path(entry.path).absolute()), name=entry.name))
    folders.sort(key=lambda item: item.name)
    return folders


__all__ = ["list_candidates", "list_subfolders", "scan_directory"]
