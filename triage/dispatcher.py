"""Concurrent per-candidate classification with a bounded number of provider calls."""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Protocol

from .errors import ClassificationError
from .events import FILE_FAILED, FILE_PROCESSING, FILE_PROPOSED, NotificationSink
from .types import Candidate, ClassificationRequest, ClassifierReply, Proposal, RunConfig

LOGGER = logging.getLogger("smartdump.triage.dispatcher")


class Classifier(Protocol):
    def classify(self, image_bytes: bytes, credential: str, *, timeout: Optional[float] = None) -> ClassifierReply:
        ...


class RunState:
    """Process-wide holder of the current run configuration.

    The lock is held only while the reference is swapped or read.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._config: Optional[RunConfig] = None

    def begin(self, config: RunConfig) -> None:
        with self._lock:
            self._config = config

    def current(self) -> Optional[RunConfig]:
        with self._lock:
            return self._config

    def clear(self) -> None:
        with self._lock:
            self._config = None


class Dispatcher:
    """Run one independent unit per candidate on a shared worker pool."""

    def __init__(
        self,
        classifier: Classifier,
        sink: NotificationSink,
        *,
        max_workers: int = 16,
        max_concurrency: int = 4,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._classifier = classifier
        self._sink = sink
        self._max_concurrency = max(1, int(max_concurrency))
        self._pool = ThreadPoolExecutor(
            max_workers=max(self._max_concurrency, int(max_workers)),
            thread_name_prefix="triage-unit",
        )
        self._call_slots = threading.BoundedSemaphore(self._max_concurrency)
        self._sleep = sleep

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    def run_batch(self, candidates: Iterable[Candidate], config: RunConfig) -> List[Future]:
        """Queue every candidate and return immediately."""

        futures = [self.submit(candidate, config) for candidate in candidates]
        LOGGER.info("dispatch: queued %d units (max %d concurrent calls)", len(futures), self._max_concurrency)
        return futures

    def submit(self, candidate: Candidate, config: RunConfig) -> Future:
        return self._pool.submit(self._run_unit, candidate, config)

    def shutdown(self, *, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    # ------------------------------------------------------------------
    def _run_unit(self, candidate: Candidate, config: RunConfig) -> Optional[Proposal]:
        self._sink.publish(FILE_PROCESSING, candidate.name)
        try:
            proposal = self._classify(ClassificationRequest(candidate=candidate, credential=config.credential), config)
        except Exception as exc:  # every unit ends with exactly one terminal event
            if not isinstance(exc, (OSError, ClassificationError)):
                LOGGER.exception("dispatch: unexpected failure for %s", candidate.name)
            self._sink.publish(FILE_FAILED, candidate.name)
            return None
        self._sink.publish(FILE_PROPOSED, proposal)
        return proposal

    def _classify(self, request: ClassificationRequest, config: RunConfig) -> Proposal:
        candidate = request.candidate
        if config.debounce_s > 0:
            self._sleep(config.debounce_s)
        try:
            image_bytes = candidate.path.read_bytes()
        except OSError as exc:
            LOGGER.warning("dispatch: cannot read %s: %s", candidate.name, exc)
            raise
        LOGGER.debug("dispatch: %r (%d bytes)", request, len(image_bytes))
        with self._call_slots:
            try:
                reply = self._classifier.classify(image_bytes, request.credential, timeout=config.request_timeout_s)
            except ClassificationError as exc:
                LOGGER.warning("dispatch: %s classification failed (%s): %s", candidate.name, exc.kind, exc)
                raise
        proposal = Proposal.from_reply(candidate, reply)
        LOGGER.info(
            "dispatch: %s -> %s/%s", candidate.name, proposal.proposed_category, proposal.proposed_name
        )
        return proposal


__all__ = ["Classifier", "Dispatcher", "RunState"]
