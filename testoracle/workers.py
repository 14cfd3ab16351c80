"""Bounded worker pool shared by model loads and test executions."""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

logger = logging.getLogger(__name__)


class Overloaded(Exception):
    """Raised when the pool queue is at capacity."""

    def __init__(self, message: str, capacity: int | None = None):
        self.capacity = capacity
        super().__init__(message)


class WorkerPool:
    """A thread pool with a bounded backlog.

    At most ``max_workers + queue_capacity`` submissions may be unfinished at
    any time. Further submissions fail fast with :class:`Overloaded` instead of
    growing the queue.
    """

    def __init__(self, max_workers: int = 4, queue_capacity: int = 32, name: str = "testoracle"):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if queue_capacity < 0:
            raise ValueError("queue_capacity must not be negative")

        self.max_workers = max_workers
        self.queue_capacity = queue_capacity
        self.name = name
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=name)
        self._slots = threading.BoundedSemaphore(max_workers + queue_capacity)
        self._lock = threading.Lock()
        self._unfinished = 0
        self._closed = False

    @property
    def capacity(self) -> int:
        """Total number of submissions the pool accepts before rejecting."""
        return self.max_workers + self.queue_capacity

    @property
    def unfinished(self) -> int:
        """Number of submissions queued or running."""
        with self._lock:
            return self._unfinished

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        """Schedule ``fn`` and return its future.

        Raises:
            Overloaded: If the backlog is full.
            RuntimeError: If the pool was shut down.
        """
        if self._closed:
            raise RuntimeError(f"Worker pool '{self.name}' is shut down")

        if not self._slots.acquire(blocking=False):
            logger.warning("Worker pool '%s' rejected work: %d slots in use", self.name, self.capacity)
            raise Overloaded(
                f"Worker pool '{self.name}' is at capacity ({self.capacity})",
                capacity=self.capacity,
            )

        with self._lock:
            self._unfinished += 1

        try:
            future = self._executor.submit(fn, *args, **kwargs)
        except RuntimeError:
            self._release(None)
            raise

        # Fires on completion and on cancellation of a pending item
        future.add_done_callback(self._release)
        return future

    def _release(self, _future: Future | None) -> None:
        with self._lock:
            self._unfinished -= 1
        self._slots.release()

    def shutdown(self, wait: bool = True, cancel_pending: bool = False) -> None:
        """Stop accepting work and release the threads."""
        self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)
