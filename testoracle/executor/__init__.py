"""Compilation and isolated execution of generated tests."""

from .errors import CompileError, ExecutionError, TestRuntimeError
from .executor import ExecutionHandle, TestExecutor
from .runner import (
    JUnitReport,
    PytestRunner,
    RunControl,
    RunOutcome,
    classify,
    compile_test,
    materialize,
    module_filename,
    parse_junit_report,
    strip_markdown_fences,
)

__all__ = [
    # Executor
    "TestExecutor",
    "ExecutionHandle",
    # Runner
    "PytestRunner",
    "RunControl",
    "RunOutcome",
    "JUnitReport",
    "strip_markdown_fences",
    "module_filename",
    "materialize",
    "compile_test",
    "parse_junit_report",
    "classify",
    # Errors
    "ExecutionError",
    "CompileError",
    "TestRuntimeError",
]
