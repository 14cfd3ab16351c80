"""Turn analyzed methods into stored test cases."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from ..analyzer.models import MethodInfo
from ..analyzer.parser import analyze_source
from ..config.models import OracleConfig
from ..inference.errors import InferenceError, ModelNotReadyError
from ..inference.manager import ModelManager
from ..store.errors import StoreError
from ..store.models import TestCase, TestPriority, TestStatus, TestType
from ..store.repository import TestCaseStore
from .errors import GenerationError, InvalidInputError
from .fallback import build_fallback_test
from .prompts import build_test_prompt

logger = logging.getLogger(__name__)

MODEL_CONFIDENCE = 0.8
FALLBACK_CONFIDENCE = 0.4

FALLBACK_NOTE = "Generated from a rule-based template because the model was not ready."


@dataclass
class GenerationFailure:
    """A method for which no test case could be produced."""

    method: MethodInfo
    error: str


@dataclass
class GenerationReport:
    """Result of generating tests for many methods."""

    generated: list[TestCase] = field(default_factory=list)
    failures: list[GenerationFailure] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.generated) + len(self.failures)

    @property
    def has_failures(self) -> bool:
        return len(self.failures) > 0


def extract_assertions(source_code: str) -> list[str]:
    """Collect the assertion lines of generated test code, skipping comments."""
    assertions = []
    for line in source_code.splitlines():
        line = line.strip()
        if "assert" in line and not line.startswith("#"):
            assertions.append(line)
    return assertions


class TestGenerator:
    """Generates one test case per method with the local language model."""

    __test__ = False

    def __init__(
        self,
        manager: ModelManager,
        store: TestCaseStore,
        config: OracleConfig | None = None,
    ):
        self.manager = manager
        self.store = store
        self.config = config or manager.config

    def generate_test_for_method(self, info: MethodInfo) -> TestCase:
        """Generate, store and return a test case for one method.

        Args:
            info: The analyzed method.

        Returns:
            The stored test case, in status GENERATED.

        Raises:
            InvalidInputError: If the method has no name.
            ModelNotReadyError: If the language model cannot be used and the
                rule-based fallback is disabled. Nothing is stored.
            GenerationError: If the model fails during generation.
        """
        if not info.method_name:
            raise InvalidInputError("Method name must not be empty", method_name=info.method_name)

        logger.info("Generating test for %s", info.fully_qualified_name)
        prompt = build_test_prompt(info)
        description = f"Test for {info.signature}"
        confidence = MODEL_CONFIDENCE

        try:
            source_code = self.manager.generate_text(prompt, self.config.generation.max_tokens)
        except ModelNotReadyError:
            if not self.config.generation.fallback_to_rule_based:
                raise
            logger.warning("Model not ready, using rule-based test for %s", info.signature)
            source_code = build_fallback_test(info)
            description = f"{description}\n\n{FALLBACK_NOTE}"
            confidence = FALLBACK_CONFIDENCE
        except InferenceError as e:
            raise GenerationError(f"Generation failed for {info.signature}: {e}") from e

        now = datetime.now()
        test_case = TestCase(
            name=f"Test{info.method_name}",
            description=description,
            package_name=info.package_name,
            class_name=f"Test{info.class_name}",
            method_name=f"test{info.method_name.lower()}",
            type=TestType.UNIT,
            priority=TestPriority.MEDIUM,
            status=TestStatus.GENERATED,
            source_code=source_code,
            assertions=extract_assertions(source_code),
            generation_prompt=prompt,
            confidence_score=confidence,
            created_at=now,
            modified_at=now,
        )
        return self.store.save(test_case)

    def generate_tests(self, methods: Iterable[MethodInfo]) -> GenerationReport:
        """Generate tests for many methods; one failure does not stop the rest."""
        report = GenerationReport()
        for info in methods:
            try:
                report.generated.append(self.generate_test_for_method(info))
            except (GenerationError, InferenceError, StoreError) as e:
                logger.error("Could not generate a test for %s: %s", info.signature, e)
                report.failures.append(GenerationFailure(method=info, error=str(e)))
        logger.info("Generated %d of %d test(s)", len(report.generated), report.total)
        return report

    def generate_tests_for_source(self, source: str, package_name: str = "") -> GenerationReport:
        """Analyze Python source and generate a test for every public method.

        Raises:
            ParseError: If the source is not valid Python.
        """
        return self.generate_tests(analyze_source(source, package_name))
