"""Storage and lookup of generated test cases."""

from .errors import IllegalTransitionError, StoreError, TestCaseNotFoundError
from .models import (
    LEGAL_TRANSITIONS,
    TERMINAL_STATUSES,
    ExecutionResult,
    TestCase,
    TestPriority,
    TestStatus,
    TestType,
    is_legal_transition,
)
from .persistence import InMemoryBackend, JsonFileBackend, PersistenceBackend
from .repository import TestCaseStore, store_from_config

__all__ = [
    # Models
    "TestCase",
    "ExecutionResult",
    "TestType",
    "TestPriority",
    "TestStatus",
    "TERMINAL_STATUSES",
    "LEGAL_TRANSITIONS",
    "is_legal_transition",
    # Store
    "TestCaseStore",
    "store_from_config",
    "PersistenceBackend",
    "InMemoryBackend",
    "JsonFileBackend",
    # Errors
    "StoreError",
    "TestCaseNotFoundError",
    "IllegalTransitionError",
]
