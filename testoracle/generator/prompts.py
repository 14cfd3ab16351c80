"""Prompt templates for test generation."""

from ..analyzer.models import MethodInfo

# Headings for well-known additional context keys; other keys are used verbatim
CONTEXT_HEADINGS = {
    "api_doc": "API Documentation",
    "project_doc": "Project Documentation",
    "test_history": "Historical Test Patterns",
    "code_comments": "Code Comments",
}

INSTRUCTIONS = """Create a comprehensive pytest test module that:
1. Tests the main functionality of the function
2. Includes appropriate assertions
3. Handles edge cases
4. Uses unittest.mock where appropriate
5. Names tests test_<function>_<scenario>_<expected_behavior>"""

CONTEXT_INSTRUCTIONS = """6. Incorporates insights from the additional context provided
7. Uses realistic test data based on the documentation
8. Follows established patterns from historical tests"""


def build_test_prompt(info: MethodInfo) -> str:
    """Build the generation prompt for one method.

    Args:
        info: The analyzed method.

    Returns:
        A prompt listing the method's location, signature, parameters,
        raised exceptions, docstring, body and any additional context,
        followed by instructions for the test.
    """
    lines = [
        "Generate a pytest test for the following Python function:",
        "",
        f"Package: {info.package_name}",
        f"Class: {info.class_name}",
        f"Method signature: {info.signature}",
        f"Return type: {info.return_type}",
    ]

    if info.parameters:
        lines.append("Parameters:")
        lines.extend(f"- {param}" for param in info.parameters)

    if info.exceptions:
        lines.append("Raises:")
        lines.extend(f"- {name}" for name in sorted(info.exceptions))

    if info.doc_comment:
        lines.extend(["", "Docstring:", info.doc_comment])

    if info.body:
        lines.extend(["", "Method body:", info.body])

    if info.additional_context:
        lines.extend(["", "Additional context:"])
        for key, value in info.additional_context.items():
            lines.extend(["", f"{CONTEXT_HEADINGS.get(key, key)}:", str(value)])

    lines.extend(["", INSTRUCTIONS])
    if info.additional_context:
        lines.append(CONTEXT_INSTRUCTIONS)

    return "\n".join(lines)
