"""Deferred completion worker.

Moves call finalization off the request path. Each task carries the
correlation id and a value snapshot of the record, so the handling thread
can return its response while persistence and dispatch happen on a pool.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass

from .orchestrator import CompletionOrchestrator, CompletionResult
from .records import LogRecord

logger = logging.getLogger("apilogs.worker")


@dataclass(frozen=True)
class CompletionTask:
    """Message handed to the worker pool."""

    correlation_id: str
    record: LogRecord


class CompletionWorker:
    """Thread pool that finalizes calls through a CompletionOrchestrator.

    Tasks for different correlation ids run in any order. Tasks for the same
    correlation id are serialized.
    """

    def __init__(
        self,
        orchestrator: CompletionOrchestrator,
        max_workers: int = 4,
        max_attempts: int = 3,
        retry_delay: float = 0.5,
    ):
        """Initialize the worker.

        Args:
            orchestrator: Performs the actual finalization
            max_workers: Pool size
            max_attempts: Attempts per task when the summary write fails
            retry_delay: Seconds between attempts
        """
        self.orchestrator = orchestrator
        self.max_attempts = max(1, max_attempts)
        self.retry_delay = retry_delay
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="apilogs-completion")
        self._locks: dict[str, tuple[threading.Lock, int]] = {}
        self._locks_guard = threading.Lock()

    def submit(self, correlation_id: str, record: LogRecord) -> Future[CompletionResult]:
        """Queue finalization of a call.

        The record is snapshotted before this returns, so later changes by
        the caller are not seen by the worker.
        """
        task = CompletionTask(correlation_id, record.snapshot())
        return self._executor.submit(self._run, task)

    def _acquire(self, correlation_id: str) -> threading.Lock:
        with self._locks_guard:
            lock, users = self._locks.get(correlation_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[correlation_id] = (lock, users + 1)
        lock.acquire()
        return lock

    def _release(self, correlation_id: str, lock: threading.Lock) -> None:
        lock.release()
        with self._locks_guard:
            _, users = self._locks[correlation_id]
            if users <= 1:
                del self._locks[correlation_id]
            else:
                self._locks[correlation_id] = (lock, users - 1)

    def _run(self, task: CompletionTask) -> CompletionResult:
        lock = self._acquire(task.correlation_id)
        try:
            for attempt in range(1, self.max_attempts + 1):
                final_attempt = attempt == self.max_attempts
                result = self.orchestrator.complete(task.correlation_id, task.record, final_attempt=final_attempt)
                if result.persisted or final_attempt:
                    return result

                logger.warning(
                    f"Completion of {task.correlation_id} failed "
                    f"(attempt {attempt}/{self.max_attempts}), retrying"
                )
                time.sleep(self.retry_delay)
        finally:
            self._release(task.correlation_id, lock)

        return result

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> CompletionWorker:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown(wait=True)
