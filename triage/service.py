"""Boundary operations of the triage pipeline, shared by the API and the CLI."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, wait
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from core.logging_utils import redact_secret

from . import scanner
from .categories import cleanup_subfolders, optimize_folder_structure, with_subcategory
from .classifier import ClassifierClient, ClassifierSettings
from .dispatcher import Dispatcher, RunState
from .events import NotificationSink
from .executor import execute_action, find_conflicts
from .filters import MAX_FILE_SIZE
from .refiner import refine_subcategory
from .types import Candidate, Conflict, FolderEntry, FolderInfo, Proposal, RunConfig, SubcategoryResult
from .watcher import FolderWatcher

LOGGER = logging.getLogger("smartdump.triage.service")


@dataclass(slots=True)
class MergeSettings:
    min_files_per_folder: int = 3
    min_files_per_subfolder: int = 3


@dataclass(slots=True)
class TriageSettings:
    debounce_s: float = 2.0
    max_file_size: int = MAX_FILE_SIZE
    max_concurrency: int = 4
    max_workers: int = 16
    request_timeout_s: float = 30.0
    watch_enable: bool = False
    classifier: ClassifierSettings = field(default_factory=ClassifierSettings)
    merge: MergeSettings = field(default_factory=MergeSettings)

    @classmethod
    def from_settings(cls, payload: Dict[str, Any]) -> "TriageSettings":
        section = payload.get("triage") or {}
        watch = section.get("watch") or {}
        merge = section.get("merge") or {}
        return cls(
            debounce_s=max(0.0, float(section.get("debounce_s", 2.0))),
            max_file_size=int(section.get("max_file_size", MAX_FILE_SIZE)),
            max_concurrency=max(1, int(section.get("max_concurrency", 4))),
            max_workers=max(1, int(section.get("max_workers", 16))),
            request_timeout_s=max(1.0, float(section.get("request_timeout_s", 30.0))),
            watch_enable=bool(watch.get("enable", False)),
            classifier=ClassifierSettings.from_settings(payload),
            merge=MergeSettings(
                min_files_per_folder=int(merge.get("min_files_per_folder", 3)),
                min_files_per_subfolder=int(merge.get("min_files_per_subfolder", 3)),
            ),
        )


class TriageService:
    """Start/stop runs, list folders, apply moves and refine categories."""

    def __init__(
        self,
        settings: TriageSettings,
        sink: NotificationSink,
        *,
        classifier: Optional[ClassifierClient] = None,
    ) -> None:
        self.settings = settings
        self.sink = sink
        self.classifier = classifier or ClassifierClient(settings.classifier)
        self.state = RunState()
        self.dispatcher = Dispatcher(
            self.classifier,
            sink,
            max_workers=settings.max_workers,
            max_concurrency=settings.max_concurrency,
        )
        self._watch_lock = threading.Lock()
        self._watcher: Optional[FolderWatcher] = None
        self._pending_lock = threading.Lock()
        self._pending: List[Future] = []

    # ------------------------------------------------------------------
    def start_run(
        self,
        folder: str | Path,
        credential: str,
        *,
        selected_paths: Optional[Iterable[str]] = None,
        watch: Optional[bool] = None,
    ) -> str:
        if not credential or not credential.strip():
            raise ValueError("API key is required")
        config = RunConfig(
            credential=credential.strip(),
            debounce_s=self.settings.debounce_s,
            request_timeout_s=self.settings.request_timeout_s,
            max_file_size=self.settings.max_file_size,
        )
        LOGGER.info("run: start %s (key=%s)", folder, redact_secret(config.credential))
        result = scanner.scan_directory(
            folder,
            sink=self.sink,
            max_file_size=config.max_file_size,
            selected=selected_paths,
        )
        self.state.begin(config)
        self._track(self.dispatcher.run_batch(result.candidates, config))

        self._stop_watch()
        if self.settings.watch_enable if watch is None else watch:
            self._start_watch(Path(folder))
        return f"Scanned {folder}"

    def stop_run(self) -> str:
        self._stop_watch()
        LOGGER.info("run: stop requested")
        return "Stopped watching"

    @property
    def watching(self) -> bool:
        with self._watch_lock:
            return self._watcher is not None

    def list_candidates(self, folder: str | Path) -> List[FolderEntry]:
        return scanner.list_candidates(folder, max_file_size=self.settings.max_file_size)

    def list_subfolders(self, folder: str | Path) -> List[FolderInfo]:
        return scanner.list_subfolders(folder)

    def apply_proposal(self, original_path: str, new_path: str) -> str:
        return execute_action(original_path, new_path)

    def refine_subcategory(self, file_path: str, parent_category: str, credential: str) -> SubcategoryResult:
        return refine_subcategory(
            file_path,
            parent_category,
            credential,
            classifier=self.classifier,
            max_file_size=self.settings.max_file_size,
            timeout=self.settings.request_timeout_s,
        )

    def apply_subcategory(self, proposal: Proposal, subcategory: str) -> Proposal:
        """Return *proposal* filed under ``<top level>/<formatted subcategory>``."""

        return with_subcategory(proposal, subcategory)

    def check_conflicts(self, proposals: Iterable[Proposal]) -> List[Conflict]:
        return find_conflicts(proposals)

    def organize(self, proposals: Iterable[Proposal]) -> List[Proposal]:
        """Merge sparse subfolders into their parent, then sparse categories into ``Other``."""

        merge = self.settings.merge
        folded = cleanup_subfolders(proposals, min_files=merge.min_files_per_subfolder)
        return optimize_folder_structure(folded, min_files=merge.min_files_per_folder)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        with self._pending_lock:
            pending = list(self._pending)
        _done, not_done = wait(pending, timeout=timeout)
        return not not_done

    def shutdown(self) -> None:
        """Stop watching, let queued units finish, then release the HTTP session."""

        self.stop_run()
        self.dispatcher.shutdown(wait=True)
        self.classifier.close()

    # ------------------------------------------------------------------
    def _track(self, futures: List[Future]) -> None:
        with self._pending_lock:
            self._pending = [future for future in self._pending if not future.done()]
            self._pending.extend(futures)

    def _stop_watch(self) -> None:
        with self._watch_lock:
            watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()

    def _start_watch(self, folder: Path) -> None:
        def _dispatch(candidate: Candidate) -> None:
            config = self.state.current()
            if config is None:
                return
            self._track([self.dispatcher.submit(candidate, config)])

        watcher = FolderWatcher(folder, _dispatch, sink=self.sink, max_file_size=self.settings.max_file_size)
        watcher.start()
        with self._watch_lock:
            self._watcher = watcher


__all__ = ["MergeSettings", "TriageService", "TriageSettings"]
