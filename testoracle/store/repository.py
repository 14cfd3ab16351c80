"""Thread-safe registry of test cases."""

import logging
import threading
from collections import defaultdict
from datetime import datetime
from uuid import UUID

from ..config.models import StorageConfig
from .errors import IllegalTransitionError, TestCaseNotFoundError
from .models import ExecutionResult, TestCase, TestStatus, is_legal_transition
from .persistence import InMemoryBackend, JsonFileBackend, PersistenceBackend

logger = logging.getLogger(__name__)


class TestCaseStore:
    """Maps test case ids to test cases and answers lookups.

    Every write for a given id runs under that id's lock, and readers always
    receive copies, so a caller can never observe or cause a partial update.
    """

    __test__ = False

    def __init__(self, backend: PersistenceBackend | None = None):
        self.backend: PersistenceBackend = backend or InMemoryBackend()
        self._locks_guard = threading.Lock()
        self._locks: defaultdict[UUID, threading.Lock] = defaultdict(threading.Lock)

    def _lock_for(self, test_id: UUID) -> threading.Lock:
        with self._locks_guard:
            return self._locks[test_id]

    def save(self, test_case: TestCase) -> TestCase:
        """Insert or fully replace a test case.

        Replacing a stored case may only change its status along a legal
        lifecycle transition.

        Raises:
            IllegalTransitionError: If the new status is not reachable from
                the stored one.
        """
        with self._lock_for(test_case.id):
            existing = self.backend.get(test_case.id)
            if existing is not None and existing.status != test_case.status:
                _check_transition(test_case.id, existing.status, test_case.status)
            self.backend.put(test_case.id, test_case)

        logger.info("Saved test case %s (%s)", test_case.id, test_case.status.value)
        return test_case.model_copy(deep=True)

    def find_by_id(self, test_id: UUID | str) -> TestCase | None:
        """Return the case with this id, or None for unknown and malformed ids."""
        try:
            test_id = _as_uuid(test_id)
        except TestCaseNotFoundError:
            return None
        return self.backend.get(test_id)

    def get(self, test_id: UUID | str) -> TestCase:
        """Like :meth:`find_by_id` but raises for unknown ids."""
        test_case = self.find_by_id(test_id)
        if test_case is None:
            raise TestCaseNotFoundError(test_id)
        return test_case

    def find_by_class(self, class_name: str) -> list[TestCase]:
        """Cases whose test class name contains ``class_name``."""
        return _ordered(self.backend.query(lambda tc: class_name in tc.class_name))

    def find_by_package(self, package_name: str) -> list[TestCase]:
        """Cases in ``package_name`` or any of its subpackages."""
        return _ordered(
            self.backend.query(
                lambda tc: tc.package_name == package_name
                or tc.package_name.startswith(package_name + ".")
            )
        )

    def find_by_status(self, status: TestStatus) -> list[TestCase]:
        return _ordered(self.backend.query(lambda tc: tc.status == status))

    def find_all(self) -> list[TestCase]:
        return _ordered(self.backend.query(lambda _: True))

    def delete(self, test_id: UUID | str) -> bool:
        try:
            test_id = _as_uuid(test_id)
        except TestCaseNotFoundError:
            return False
        with self._lock_for(test_id):
            deleted = self.backend.delete(test_id)
        with self._locks_guard:
            self._locks.pop(test_id, None)
        if deleted:
            logger.info("Deleted test case %s", test_id)
        return deleted

    def transition(
        self,
        test_id: UUID | str,
        status: TestStatus,
        result: ExecutionResult | None = None,
    ) -> TestCase:
        """Atomically move a case to ``status`` and record its result.

        Raises:
            TestCaseNotFoundError: If the id is unknown.
            IllegalTransitionError: If the move breaks the lifecycle.
        """
        test_id = _as_uuid(test_id)
        with self._lock_for(test_id):
            test_case = self.backend.get(test_id)
            if test_case is None:
                raise TestCaseNotFoundError(test_id)
            _check_transition(test_id, test_case.status, status)

            now = datetime.now()
            test_case.status = status
            test_case.modified_at = now
            if result is not None:
                test_case.result = result
                test_case.last_executed_at = result.executed_at
            self.backend.put(test_id, test_case)

        logger.info("Test case %s is now %s", test_id, status.value)
        return test_case


def _check_transition(test_id: UUID, current: TestStatus, target: TestStatus) -> None:
    if not is_legal_transition(current, target):
        raise IllegalTransitionError(
            f"Test case {test_id} cannot move from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )


def _as_uuid(test_id: UUID | str) -> UUID:
    if isinstance(test_id, UUID):
        return test_id
    try:
        return UUID(str(test_id))
    except ValueError:
        raise TestCaseNotFoundError(test_id) from None


def _ordered(cases: list[TestCase]) -> list[TestCase]:
    return sorted(cases, key=lambda tc: tc.created_at)


def store_from_config(storage: StorageConfig) -> TestCaseStore:
    """Build a store on the backend named in the storage configuration."""
    if storage.backend == "memory":
        return TestCaseStore(InMemoryBackend())
    return TestCaseStore(JsonFileBackend(storage.testcases_dir))
