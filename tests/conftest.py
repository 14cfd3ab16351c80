"""Shared fixtures for tests."""

import threading
import time
from pathlib import Path

import pytest

from testoracle.config.models import OracleConfig
from testoracle.store.models import TestCase
from testoracle.store.repository import TestCaseStore

GENERATED_TEST = """def test_add():
    assert 1 + 1 == 2
"""


class FakeModel:
    """Loaded model stand-in returning canned output."""

    def __init__(self, name: str, output: str = GENERATED_TEST):
        self.name = name
        self.output = output
        self.prompts: list[str] = []
        self.closed = False

    def generate(self, prompt: str, max_tokens: int) -> str:
        self.prompts.append(prompt)
        return self.output

    def embed(self, text: str) -> list[float]:
        return [0.1, 0.2, 0.3]

    def close(self) -> None:
        self.closed = True


class FakeLoader:
    """Model loader that counts loads and can fail or stall on demand."""

    def __init__(self, present: bool = True, failures: int = 0, delay: float = 0.0, output: str = GENERATED_TEST):
        self.present = present
        self.failures = failures
        self.delay = delay
        self.output = output
        self.load_calls = 0
        self.models: list[FakeModel] = []
        self._lock = threading.Lock()

    def is_present(self, path: Path) -> bool:
        return self.present

    def load(self, name: str, path: Path) -> FakeModel:
        with self._lock:
            self.load_calls += 1
            call = self.load_calls
        if self.delay:
            time.sleep(self.delay)
        if call <= self.failures:
            raise RuntimeError(f"load failure {call}")
        model = FakeModel(name, self.output)
        self.models.append(model)
        return model


@pytest.fixture
def config(tmp_path) -> OracleConfig:
    """Configuration rooted in a temporary directory with fast retries."""
    return OracleConfig.model_validate(
        {
            "models": {
                "base_dir": str(tmp_path / "models"),
                "cache_dir": str(tmp_path / "cache"),
                "retry_backoff_seconds": 0,
                "quantize": False,
            },
            "timeouts": {"load_seconds": 5, "execution_seconds": 30},
            "storage": {"output_dir": str(tmp_path / "output"), "backend": "memory"},
            "workers": {"max_workers": 2, "queue_capacity": 4},
        }
    )


@pytest.fixture
def fake_loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def make_loader():
    """The fake loader class, for tests that need a configured instance."""
    return FakeLoader


@pytest.fixture
def store() -> TestCaseStore:
    return TestCaseStore()


@pytest.fixture
def make_test_case():
    """Factory for test cases with sensible defaults."""

    def _make(**overrides) -> TestCase:
        data = {
            "name": "Testadd",
            "description": "Test for add(int a, int b)",
            "package_name": "shop.calc",
            "class_name": "TestCalculator",
            "method_name": "testadd",
            "source_code": GENERATED_TEST,
            "confidence_score": 0.8,
        }
        data.update(overrides)
        return TestCase(**data)

    return _make


@pytest.fixture
def calculator_source() -> str:
    """Return a small module with a class, a static method and a function."""
    return '''
"""Arithmetic helpers."""


class Calculator:
    """Adds and divides."""

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        return a + b

    def divide(self, a: float, b: float) -> float:
        """Divide a by b.

        Raises:
            ZeroDivisionError: If b is zero.
        """
        if b == 0:
            raise ZeroDivisionError("b must not be zero")
        return a / b

    @staticmethod
    def identity(value):
        return value

    def _internal(self):
        return None


def parse_amount(text: str, *, strict: bool = False) -> int:
    """Parse an amount.

    :raises ValueError: if text is not numeric
    """
    if strict and not text.isdigit():
        raise ValueError(text)
    return int(text)
'''
