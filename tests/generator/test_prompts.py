"""Tests for generation prompts."""

from testoracle.analyzer.models import MethodInfo, ParameterInfo
from testoracle.generator.prompts import build_test_prompt


def _divide() -> MethodInfo:
    return MethodInfo(
        package_name="shop.calc",
        class_name="Calculator",
        method_name="divide",
        return_type="float",
        parameters=(ParameterInfo("float", "a"), ParameterInfo("float", "b")),
        exceptions={"ZeroDivisionError"},
        doc_comment="Divide a by b.",
        body="return a / b",
    )


class TestBuildTestPrompt:
    def test_contains_method_data(self):
        prompt = build_test_prompt(_divide())

        assert "Package: shop.calc" in prompt
        assert "Class: Calculator" in prompt
        assert "Method signature: divide(float a, float b)" in prompt
        assert "Return type: float" in prompt
        assert "- float a" in prompt
        assert "- ZeroDivisionError" in prompt
        assert "Divide a by b." in prompt
        assert "return a / b" in prompt
        assert "pytest" in prompt

    def test_optional_sections_omitted(self):
        prompt = build_test_prompt(MethodInfo("", "", "ping"))

        assert "Parameters:" not in prompt
        assert "Raises:" not in prompt
        assert "Docstring:" not in prompt
        assert "Additional context:" not in prompt

    def test_additional_context(self):
        info = MethodInfo(
            "shop.calc",
            "Calculator",
            "divide",
            additional_context={"api_doc": "POST /divide", "ticket": "CALC-12"},
        )

        prompt = build_test_prompt(info)

        assert "API Documentation:\nPOST /divide" in prompt
        assert "ticket:\nCALC-12" in prompt
        assert "Incorporates insights from the additional context" in prompt
