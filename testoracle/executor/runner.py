"""Materialize, compile and run one generated test with pytest."""

import logging
import os
import re
import subprocess
import tempfile
import threading
import time
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..config.models import ExecutionConfig
from ..store.models import ExecutionResult, TestCase, TestStatus
from .errors import CompileError, ExecutionError, TestRuntimeError

logger = logging.getLogger(__name__)

# First fenced block of a markdown answer, with or without a language tag
FENCE_PATTERN = re.compile(r"```[\w+-]*[ \t]*\n(.*?)```", re.DOTALL)

# Failure messages produced by plain asserts, AssertionError and pytest.fail()
ASSERTION_PREFIXES = ("assert", "AssertionError", "Failed:")

# Leave room for the interpreter to flush the report after a kill
KILL_GRACE_SECONDS = 5


@dataclass
class RunOutcome:
    """Terminal status and result of one run."""

    status: TestStatus
    result: ExecutionResult


class RunControl:
    """Cancellation handle shared between the executor and a running test."""

    def __init__(self):
        self._lock = threading.Lock()
        self._process: subprocess.Popen | None = None
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def attach(self, process: subprocess.Popen) -> bool:
        """Track a started process; kills it at once if already cancelled."""
        with self._lock:
            if self._cancelled:
                process.kill()
                return False
            self._process = process
            return True

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            if self._process is not None and self._process.poll() is None:
                self._process.kill()


def strip_markdown_fences(source_code: str) -> str:
    """Return the code inside the first markdown fence, or the text unchanged."""
    match = FENCE_PATTERN.search(source_code)
    if match:
        return match.group(1)
    return source_code


def module_filename(test_case: TestCase) -> str:
    """File name for a materialized test, ``test_<class>_<id>.py``."""
    class_part = re.sub(r"\W", "_", test_case.class_name).lower() or "case"
    return f"test_{class_part}_{test_case.id.hex}.py"


def materialize(test_case: TestCase, directory: Path) -> Path:
    """Write the test source into ``directory`` and return its path."""
    path = directory / module_filename(test_case)
    path.write_text(strip_markdown_fences(test_case.source_code), encoding="utf-8")
    return path


def compile_test(path: Path) -> None:
    """Byte-compile a test module without running it.

    Raises:
        CompileError: If the module is not valid Python.
    """
    source = path.read_text(encoding="utf-8")
    try:
        compile(source, str(path), "exec")
    except SyntaxError as e:
        raise CompileError(f"Compilation failed: {e.msg} at line {e.lineno}", line=e.lineno) from e
    except ValueError as e:
        raise CompileError(f"Compilation failed: {e}") from e


@dataclass
class JUnitReport:
    """Test count plus the failure and error elements of a JUnit XML report."""

    tests: int = 0
    failures: list[ET.Element] = field(default_factory=list)
    errors: list[ET.Element] = field(default_factory=list)


def parse_junit_report(path: Path) -> JUnitReport:
    """Count test cases and collect failure and error elements.

    Raises:
        TestRuntimeError: If the report is missing or malformed.
    """
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as e:
        raise TestRuntimeError(f"Cannot read test report: {e}") from e

    report = JUnitReport()
    for case in root.iter("testcase"):
        report.tests += 1
        report.failures.extend(case.findall("failure"))
        report.errors.extend(case.findall("error"))
    return report


def classify(report: JUnitReport) -> tuple[TestStatus, str | None, str | None]:
    """Map a report onto a terminal status, failure message and stack trace.

    Only assertion failures count as FAILED; any other exception, a
    collection error or an empty run is an ERROR.
    """
    if report.errors:
        first = report.errors[0]
        return TestStatus.ERROR, first.get("message", "Test error"), first.text

    if report.tests == 0:
        return TestStatus.ERROR, "No tests collected", None

    if report.failures:
        unexpected = [f for f in report.failures if not _is_assertion_failure(f)]
        first = unexpected[0] if unexpected else report.failures[0]
        status = TestStatus.ERROR if unexpected else TestStatus.FAILED
        return status, first.get("message", "Test failed"), first.text

    return TestStatus.PASSED, None, None


def _is_assertion_failure(element: ET.Element) -> bool:
    message = (element.get("message") or "").lstrip()
    return message.startswith(ASSERTION_PREFIXES)


class PytestRunner:
    """Runs a single test case in a fresh temporary directory."""

    def __init__(self, execution: ExecutionConfig | None = None, timeout: float = 60.0):
        self.execution = execution or ExecutionConfig()
        self.timeout = timeout

    def run(self, test_case: TestCase, control: RunControl | None = None) -> RunOutcome:
        """Compile and run a test case; never raises for test problems."""
        control = control or RunControl()
        started = time.monotonic()

        with tempfile.TemporaryDirectory(prefix="testoracle-") as tmp:
            directory = Path(tmp)
            try:
                path = materialize(test_case, directory)
                compile_test(path)
                status, message, trace, tests_run = self._run_pytest(path, directory, control)
            except ExecutionError as e:
                status, message, trace, tests_run = TestStatus.ERROR, str(e), None, 0
            except OSError as e:
                status, message, trace, tests_run = TestStatus.ERROR, f"Cannot run test: {e}", None, 0

        result = ExecutionResult(
            duration_ms=int((time.monotonic() - started) * 1000),
            failure_message=message,
            stack_trace=trace,
            executed_at=datetime.now(),
            tests_run=tests_run,
        )
        logger.info("Test case %s finished: %s", test_case.id, status.value)
        return RunOutcome(status=status, result=result)

    def _command(self, path: Path, report_path: Path) -> list[str]:
        return [
            self.execution.python,
            "-m",
            "pytest",
            str(path),
            f"--junitxml={report_path}",
            f"--rootdir={path.parent}",
            "-q",
            "-p",
            "no:cacheprovider",
            *self.execution.pytest_args,
        ]

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        roots = [str(Path(root).resolve()) for root in self.execution.source_roots]
        if env.get("PYTHONPATH"):
            roots.append(env["PYTHONPATH"])
        if roots:
            env["PYTHONPATH"] = os.pathsep.join(roots)
        return env

    def _run_pytest(
        self, path: Path, directory: Path, control: RunControl
    ) -> tuple[TestStatus, str | None, str | None, int]:
        report_path = directory / "report.xml"
        if control.cancelled:
            return TestStatus.ERROR, "Execution cancelled", None, 0

        process = subprocess.Popen(
            self._command(path, report_path),
            cwd=directory,
            env=self._environment(),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
        )
        if not control.attach(process):
            process.communicate()
            return TestStatus.ERROR, "Execution cancelled", None, 0

        try:
            output, _ = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            process.communicate(timeout=KILL_GRACE_SECONDS)
            logger.warning("Test %s timed out after %ss", path.name, self.timeout)
            return TestStatus.ERROR, f"Test execution timed out after {self.timeout}s", None, 0

        if control.cancelled:
            return TestStatus.ERROR, "Execution cancelled", None, 0

        if not report_path.exists():
            raise TestRuntimeError(
                f"pytest exited with code {process.returncode} without a report", output=output
            )

        report = parse_junit_report(report_path)
        status, message, trace = classify(report)
        if status == TestStatus.ERROR and report.tests == 0 and output:
            trace = output
        return status, message, trace, report.tests
