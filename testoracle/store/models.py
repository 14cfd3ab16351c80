"""Pydantic models for generated test cases."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class TestType(str, Enum):
    """Kind of test a case represents."""

    __test__ = False

    UNIT = "UNIT"
    INTEGRATION = "INTEGRATION"
    API = "API"
    UI = "UI"
    PERFORMANCE = "PERFORMANCE"
    SECURITY = "SECURITY"


class TestPriority(str, Enum):
    """How urgently a case should be run or reviewed."""

    __test__ = False

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class TestStatus(str, Enum):
    """Lifecycle state of a test case."""

    __test__ = False

    GENERATED = "GENERATED"
    COMPILING = "COMPILING"  # picked up by the executor, running
    PASSED = "PASSED"
    FAILED = "FAILED"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({TestStatus.PASSED, TestStatus.FAILED, TestStatus.ERROR})

# GENERATED -> ERROR covers executions cancelled before they start
LEGAL_TRANSITIONS: dict[TestStatus, frozenset[TestStatus]] = {
    TestStatus.GENERATED: frozenset({TestStatus.COMPILING, TestStatus.ERROR}),
    TestStatus.COMPILING: TERMINAL_STATUSES,
    TestStatus.PASSED: frozenset(),
    TestStatus.FAILED: frozenset(),
    TestStatus.ERROR: frozenset(),
}


def is_legal_transition(current: TestStatus, target: TestStatus) -> bool:
    """Check whether a test case may move from ``current`` to ``target``."""
    return target in LEGAL_TRANSITIONS[current]


class ExecutionResult(BaseModel):
    """Outcome of running one test case."""

    duration_ms: int = Field(default=0, ge=0)
    failure_message: str | None = None
    stack_trace: str | None = None
    executed_at: datetime = Field(default_factory=datetime.now)
    tests_run: int = Field(default=0, ge=0)


class TestCase(BaseModel):
    """A generated test and everything known about it."""

    __test__ = False

    id: UUID = Field(default_factory=uuid4)
    name: str
    description: str = ""
    package_name: str = ""
    class_name: str = ""
    method_name: str = ""
    type: TestType = TestType.UNIT
    priority: TestPriority = TestPriority.MEDIUM
    status: TestStatus = TestStatus.GENERATED
    source_code: str = ""
    assertions: list[str] = Field(default_factory=list)
    generation_prompt: str = ""
    confidence_score: float = Field(default=0.0, ge=0.0, le=1.0)
    result: ExecutionResult | None = None
    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)
    last_executed_at: datetime | None = None
