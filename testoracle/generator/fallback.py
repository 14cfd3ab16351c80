"""Template-based pytest generation used when no model is available."""

import logging

from ..analyzer.models import MethodInfo, ParameterInfo

logger = logging.getLogger(__name__)

FALLBACK_MARKER = "# Generated from a rule-based template; no language model was available"

# Placeholder argument per annotation
SAMPLE_VALUES = {
    "int": "1",
    "float": "1.0",
    "str": '"test"',
    "bool": "True",
    "bytes": 'b"test"',
    "list": "[]",
    "dict": "{}",
    "set": "set()",
    "tuple": "()",
}

NUMERIC_TYPES = {"int", "float", "complex"}


def build_fallback_test(info: MethodInfo) -> str:
    """Produce a minimal pytest module exercising ``info``.

    The assertion is chosen by the declared return type: a type check for
    ``str``, numbers and ``bool``, a plain call for ``None``, and a not-None
    check for everything else.
    """
    logger.info("Generating rule-based test for %s", info.signature)

    lines = [FALLBACK_MARKER]
    target = info.class_name.split(".")[0] if info.class_name else info.method_name
    if info.package_name:
        lines.append(f"from {info.package_name} import {target}")
    lines.extend(["", "", f"def test_{info.method_name.lower()}():"])

    call = f"{_receiver(info)}.{info.method_name}" if info.class_name else info.method_name
    args = ", ".join(_sample_argument(p) for p in info.parameters if not p.name.startswith("*"))
    if info.class_name and not info.is_static:
        lines.extend([
            "    # Arrange",
            f"    instance = {info.class_name}()",
            "",
        ])

    return_type = _base_type(info.return_type)
    if return_type == "None":
        lines.extend([
            "    # Act / Assert: must not raise",
            f"    {call}({args})",
        ])
    else:
        lines.extend([
            "    # Act",
            f"    result = {call}({args})",
            "",
            "    # Assert",
            f"    {_assertion(return_type)}",
        ])

    return "\n".join(lines) + "\n"


def _receiver(info: MethodInfo) -> str:
    return info.class_name if info.is_static else "instance"


def _base_type(annotation: str) -> str:
    # "list[int]" -> "list", "Optional[str]" stays as is
    return annotation.split("[", 1)[0].strip()


def _sample_argument(param: ParameterInfo) -> str:
    return SAMPLE_VALUES.get(_base_type(param.type), "None")


def _assertion(return_type: str) -> str:
    if return_type == "str":
        return "assert isinstance(result, str)"
    if return_type in NUMERIC_TYPES:
        return "assert isinstance(result, (int, float, complex))"
    if return_type == "bool":
        return "assert isinstance(result, bool)"
    return "assert result is not None"
