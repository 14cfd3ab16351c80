"""Test case store exceptions."""

from uuid import UUID


class StoreError(Exception):
    """Base exception for test case storage errors."""

    pass


class TestCaseNotFoundError(StoreError):
    """Raised when no test case exists for an id."""

    __test__ = False

    def __init__(self, test_id: UUID | str):
        self.test_id = test_id
        super().__init__(f"Test case not found: {test_id}")


class IllegalTransitionError(StoreError):
    """Raised when a status change violates the test case lifecycle."""

    def __init__(self, message: str, current: str | None = None, target: str | None = None):
        self.current = current
        self.target = target
        super().__init__(message)
