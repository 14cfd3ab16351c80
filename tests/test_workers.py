"""Tests for the bounded worker pool."""

import threading

import pytest

from testoracle.workers import Overloaded, WorkerPool


@pytest.fixture
def pool():
    pool = WorkerPool(max_workers=1, queue_capacity=1, name="test-pool")
    yield pool
    pool.shutdown(wait=True, cancel_pending=True)


class TestWorkerPool:
    def test_runs_submitted_work(self, pool):
        future = pool.submit(lambda x: x * 2, 21)
        assert future.result(timeout=5) == 42

    def test_capacity(self, pool):
        assert pool.capacity == 2

    def test_rejects_beyond_capacity(self, pool):
        release = threading.Event()
        running = pool.submit(release.wait, 5)
        queued = pool.submit(lambda: "queued")

        with pytest.raises(Overloaded) as exc_info:
            pool.submit(lambda: "rejected")
        assert exc_info.value.capacity == 2

        release.set()
        assert running.result(timeout=5) is True
        assert queued.result(timeout=5) == "queued"

    def test_slot_freed_after_completion(self, pool):
        for _ in range(5):
            pool.submit(lambda: None).result(timeout=5)
        assert pool.unfinished == 0

    def test_cancelling_pending_work_frees_slot(self, pool):
        release = threading.Event()
        running = pool.submit(release.wait, 5)
        pending = pool.submit(lambda: "never")

        assert pending.cancel() is True
        accepted = pool.submit(lambda: "accepted")

        release.set()
        running.result(timeout=5)
        assert accepted.result(timeout=5) == "accepted"

    def test_submit_after_shutdown(self):
        pool = WorkerPool(max_workers=1, queue_capacity=0)
        pool.shutdown()
        with pytest.raises(RuntimeError):
            pool.submit(lambda: None)

    def test_invalid_sizes(self):
        with pytest.raises(ValueError):
            WorkerPool(max_workers=0)
        with pytest.raises(ValueError):
            WorkerPool(queue_capacity=-1)
