"""Output formatting for analyzed methods, test cases and local models."""

import json
from typing import Literal

from ..analyzer.models import MethodInfo
from ..inference.status import LocalModel
from ..store.models import TestCase, TestStatus

OutputFormat = Literal["text", "json"]

STATUS_SYMBOLS = {
    TestStatus.GENERATED: "○",
    TestStatus.COMPILING: "…",
    TestStatus.PASSED: "✔",
    TestStatus.FAILED: "✘",
    TestStatus.ERROR: "⚠",
}


def format_methods(methods: list[MethodInfo], format: OutputFormat = "text") -> str:
    """Format analyzer output.

    Args:
        methods: Methods found in the source.
        format: Output format ("text" or "json").

    Returns:
        Formatted string representation.
    """
    if format == "json":
        data = [
            {
                "package_name": m.package_name,
                "class_name": m.class_name,
                "method_name": m.method_name,
                "signature": m.signature,
                "return_type": m.return_type,
                "parameters": [{"type": p.type, "name": p.name} for p in m.parameters],
                "exceptions": sorted(m.exceptions),
                "is_static": m.is_static,
                "doc_comment": m.doc_comment,
            }
            for m in methods
        ]
        return json.dumps(data, indent=2)

    if not methods:
        return "No testable methods found"

    lines = []
    for m in methods:
        owner = f"{m.class_name}." if m.class_name else ""
        returns = f" -> {m.return_type}" if m.return_type else ""
        line = f"  {owner}{m.signature}{returns}"
        if m.exceptions:
            line += f"  raises {', '.join(sorted(m.exceptions))}"
        lines.append(line)

    lines.append("")
    lines.append(f"Found {len(methods)} method(s)")
    return "\n".join(lines)


def format_test_cases(cases: list[TestCase], format: OutputFormat = "text") -> str:
    """Format stored test cases as a listing."""
    if format == "json":
        return json.dumps([tc.model_dump(mode="json") for tc in cases], indent=2)

    if not cases:
        return "No test cases"

    lines = [_format_case_text(tc) for tc in cases]
    lines.append("")
    lines.append(_summary(cases))
    return "\n".join(lines)


def _format_case_text(tc: TestCase) -> str:
    symbol = STATUS_SYMBOLS.get(tc.status, "?")
    line = f"{symbol} {tc.id} {tc.class_name}.{tc.method_name} [{tc.status.value}]"
    if tc.result and tc.result.failure_message:
        first_line = tc.result.failure_message.splitlines()[0]
        line += f"\n    {first_line}"
    return line


def _summary(cases: list[TestCase]) -> str:
    counts: dict[TestStatus, int] = {}
    for tc in cases:
        counts[tc.status] = counts.get(tc.status, 0) + 1
    parts = [f"{counts[s]} {s.value.lower()}" for s in TestStatus if s in counts]
    return f"{len(cases)} test case(s): {', '.join(parts)}"


def format_local_models(local_models: list[LocalModel], format: OutputFormat = "text") -> str:
    """Format what each model has on disk."""
    if format == "json":
        data = [
            {
                "name": m.name,
                "present": m.present,
                "path": str(m.path),
                "quantized_path": str(m.quantized_path) if m.quantized_path else None,
            }
            for m in local_models
        ]
        return json.dumps(data, indent=2)

    lines = []
    for m in local_models:
        state = "downloaded" if m.present else "missing"
        line = f"  {m.name}: {state} ({m.path})"
        if m.quantized_path:
            line += f", quantized copy at {m.quantized_path}"
        lines.append(line)
    return "\n".join(lines)
