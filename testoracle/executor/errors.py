"""Test execution exceptions.

These describe why a run ended in ERROR. They are recorded on the test case
result rather than raised to the caller that requested the execution.
"""


class ExecutionError(Exception):
    """Base exception for test execution errors."""

    pass


class CompileError(ExecutionError):
    """Raised when generated test code is not valid Python."""

    def __init__(self, message: str, line: int | None = None):
        self.line = line
        super().__init__(message)


class TestRuntimeError(ExecutionError):
    """Raised when the test process cannot run or produce a report."""

    __test__ = False

    def __init__(self, message: str, output: str | None = None):
        self.output = output
        super().__init__(message)
