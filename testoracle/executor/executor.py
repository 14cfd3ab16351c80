"""Asynchronous execution of stored test cases."""

import logging
import threading
from concurrent.futures import Future
from uuid import UUID

from ..config.models import OracleConfig
from ..store.errors import IllegalTransitionError
from ..store.models import ExecutionResult, TestCase, TestStatus
from ..store.repository import TestCaseStore
from ..workers import Overloaded, WorkerPool
from .runner import PytestRunner, RunControl

logger = logging.getLogger(__name__)


class ExecutionHandle:
    """Returned by :meth:`TestExecutor.execute_test` before the run starts."""

    def __init__(self, test_id: UUID, future: Future, control: RunControl, executor: "TestExecutor"):
        self.test_id = test_id
        self._future = future
        self._control = control
        self._executor = executor

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def result(self, timeout: float | None = None) -> TestCase:
        """Wait for the run and return the updated test case.

        Raises:
            concurrent.futures.CancelledError: If the run was cancelled
                before it started.
            concurrent.futures.TimeoutError: If the run is still going after
                ``timeout`` seconds.
        """
        return self._future.result(timeout=timeout)

    def cancel(self) -> bool:
        """Cancel the run.

        A queued run is dropped and the test case keeps its status. A run in
        progress has its test process killed and ends in ERROR.

        Returns:
            False if the run had already finished.
        """
        if self._future.cancel():
            self._executor._forget(self.test_id, self)
            logger.info("Cancelled queued execution of test case %s", self.test_id)
            return True
        if self._future.done():
            return False
        self._control.cancel()
        logger.info("Cancelling running execution of test case %s", self.test_id)
        return True


class TestExecutor:
    """Runs stored test cases on a bounded worker pool.

    The executor is the only component that moves a test case out of
    GENERATED. Each run performs exactly two store writes: GENERATED to
    COMPILING when it starts, and one terminal status with its result.
    """

    __test__ = False

    def __init__(
        self,
        store: TestCaseStore,
        pool: WorkerPool | None = None,
        config: OracleConfig | None = None,
        runner: PytestRunner | None = None,
    ):
        self.store = store
        self.config = config or OracleConfig()
        self.runner = runner or PytestRunner(
            self.config.execution, timeout=self.config.timeouts.execution_seconds
        )

        self._owns_pool = pool is None
        self._pool = pool or WorkerPool(
            max_workers=self.config.workers.max_workers,
            queue_capacity=self.config.workers.queue_capacity,
            name="test-executor",
        )
        self._lock = threading.Lock()
        self._handles: dict[UUID, ExecutionHandle] = {}

    def execute_test(self, test_id: UUID | str) -> ExecutionHandle:
        """Queue a test case for execution and return immediately.

        Submitting an id that is already queued or running returns the
        existing handle.

        Raises:
            TestCaseNotFoundError: If the id is unknown.
            IllegalTransitionError: If the test case is not GENERATED.
            Overloaded: If the worker pool queue is full.
        """
        test_case = self.store.get(test_id)

        with self._lock:
            existing = self._handles.get(test_case.id)
            if existing is not None and not existing.done():
                return existing

            if test_case.status != TestStatus.GENERATED:
                raise IllegalTransitionError(
                    f"Test case {test_case.id} is {test_case.status.value}, only GENERATED tests can run",
                    current=test_case.status.value,
                    target=TestStatus.COMPILING.value,
                )

            control = RunControl()
            future = self._pool.submit(self._run, test_case.id, control)
            handle = ExecutionHandle(test_case.id, future, control, self)
            self._handles[test_case.id] = handle

        logger.info("Queued test case %s for execution", test_case.id)
        return handle

    def execute_sync(self, test_id: UUID | str, timeout: float | None = None) -> TestCase:
        """Execute a test case and wait for its result."""
        return self.execute_test(test_id).result(timeout=timeout)

    def execute_all_with_status(self, status: TestStatus = TestStatus.GENERATED) -> list[ExecutionHandle]:
        """Queue every test case in ``status``.

        Submission stops at the first :class:`Overloaded`; the remaining
        cases keep their status and can be submitted later.
        """
        cases = self.store.find_by_status(status)
        handles = []
        for index, test_case in enumerate(cases):
            try:
                handles.append(self.execute_test(test_case.id))
            except Overloaded:
                logger.warning(
                    "Executor at capacity, %d test case(s) not queued", len(cases) - index
                )
                break
        return handles

    def _run(self, test_id: UUID, control: RunControl) -> TestCase:
        try:
            test_case = self.store.transition(test_id, TestStatus.COMPILING)
            try:
                outcome = self.runner.run(test_case, control)
                status, result = outcome.status, outcome.result
            except Exception as e:
                # Any runner fault still has to settle the case
                logger.exception("Execution of test case %s failed", test_id)
                status, result = TestStatus.ERROR, ExecutionResult(failure_message=str(e))
            return self.store.transition(test_id, status, result)
        finally:
            with self._lock:
                handle = self._handles.get(test_id)
                if handle is not None and handle._control is control:
                    del self._handles[test_id]

    def _forget(self, test_id: UUID, handle: ExecutionHandle) -> None:
        with self._lock:
            if self._handles.get(test_id) is handle:
                del self._handles[test_id]

    def shutdown(self, wait: bool = True, cancel: bool = True) -> None:
        """Stop the pool if the executor owns it.

        With ``cancel`` outstanding runs are cancelled first; without it they
        are left to finish and record their results.
        """
        if cancel:
            with self._lock:
                handles = list(self._handles.values())
            for handle in handles:
                handle.cancel()
        if self._owns_pool:
            self._pool.shutdown(wait=wait)
