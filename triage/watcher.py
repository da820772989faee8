"""Optional live watch that forwards newly created screenshots to the dispatcher."""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import FILE_SKIPPED, NotificationSink
from .filters import MAX_FILE_SIZE, is_candidate
from .types import Candidate, SkipRecord

LOGGER = logging.getLogger("smartdump.triage.watcher")


class ScreenshotHandler(FileSystemEventHandler):
    """Turn created / moved-in files of the watched folder into candidates."""

    def __init__(
        self,
        folder: Path,
        on_candidate: Callable[[Candidate], None],
        *,
        sink: Optional[NotificationSink] = None,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        super().__init__()
        self.folder = folder.resolve()
        self._on_candidate = on_candidate
        self._sink = sink
        self._max_file_size = max_file_size
        self._accepting = threading.Event()
        self._accepting.set()

    def stop_accepting(self) -> None:
        self._accepting.clear()

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.handle_path(Path(str(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.handle_path(Path(str(event.dest_path)))

    def handle_path(self, path: Path) -> None:
        if not self._accepting.is_set():
            return
        if path.parent.resolve() != self.folder or not is_candidate(path.name):
            return
        try:
            size = path.stat().st_size
        except OSError as exc:
            LOGGER.warning("watch: cannot read metadata of %s: %s", path.name, exc)
            return
        if size > self._max_file_size:
            if self._sink is not None:
                self._sink.publish(FILE_SKIPPED, SkipRecord(name=path.name, size=size))
            return
        LOGGER.info("watch: new screenshot %s", path.name)
        self._on_candidate(Candidate(path=path.absolute(), name=path.name, size=size))


class FolderWatcher:
    """Live-watch handle; ``stop()`` drops further filesystem events immediately."""

    def __init__(
        self,
        folder: str | Path,
        on_candidate: Callable[[Candidate], None],
        *,
        sink: Optional[NotificationSink] = None,
        max_file_size: int = MAX_FILE_SIZE,
    ) -> None:
        self.folder = Path(folder)
        self.handler = ScreenshotHandler(self.folder, on_candidate, sink=sink, max_file_size=max_file_size)
        self._observer: Optional[Observer] = None

    @property
    def running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        observer = Observer()
        observer.schedule(self.handler, str(self.folder), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        LOGGER.info("watch: watching %s", self.folder)

    def stop(self, *, timeout: float = 5.0) -> None:
        self.handler.stop_accepting()
        observer = self._observer
        self._observer = None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout)
        LOGGER.info("watch: stopped watching %s", self.folder)


__all__ = ["FolderWatcher", "ScreenshotHandler"]
