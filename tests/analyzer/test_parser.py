"""Tests for Python source analysis."""

import pytest

from testoracle.analyzer.errors import ParseError
from testoracle.analyzer.models import MethodInfo, ParameterInfo
from testoracle.analyzer.parser import (
    analyze_file,
    analyze_source,
    find_methods,
    package_name_for,
    scan_directory,
)


def _by_name(methods: list[MethodInfo]) -> dict[str, MethodInfo]:
    return {m.method_name: m for m in methods}


class TestAnalyzeSource:
    def test_finds_public_methods_in_order(self, calculator_source):
        methods = analyze_source(calculator_source, "shop.calc")

        assert [m.method_name for m in methods] == ["add", "divide", "identity", "parse_amount"]
        assert all(m.package_name == "shop.calc" for m in methods)

    def test_method_details(self, calculator_source):
        add = _by_name(analyze_source(calculator_source))["add"]

        assert add.class_name == "Calculator"
        assert add.return_type == "int"
        assert add.parameters == (ParameterInfo("int", "a"), ParameterInfo("int", "b"))
        assert add.signature == "add(int a, int b)"
        assert add.doc_comment == "Add two numbers."
        assert add.body == "return a + b"
        assert add.is_public is True
        assert add.is_static is False

    def test_raised_and_documented_exceptions(self, calculator_source):
        methods = _by_name(analyze_source(calculator_source))

        assert methods["divide"].exceptions == frozenset({"ZeroDivisionError"})
        assert methods["parse_amount"].exceptions == frozenset({"ValueError"})
        assert methods["add"].exceptions == frozenset()

    def test_static_and_module_functions(self, calculator_source):
        methods = _by_name(analyze_source(calculator_source))

        identity = methods["identity"]
        assert identity.is_static is True
        assert identity.parameters == (ParameterInfo("", "value"),)

        parse_amount = methods["parse_amount"]
        assert parse_amount.class_name == ""
        assert parse_amount.is_static is True
        assert [p.name for p in parse_amount.parameters] == ["text", "strict"]

    def test_private_methods_excluded_by_default(self, calculator_source):
        names = [m.method_name for m in analyze_source(calculator_source)]
        assert "_internal" not in names

    def test_include_private(self, calculator_source):
        methods = _by_name(analyze_source(calculator_source, include_private=True))
        assert methods["_internal"].is_public is False

    def test_private_class_skipped(self):
        source = "class _Helper:\n    def run(self):\n        return 1\n"
        assert analyze_source(source) == []

    def test_nested_class_name(self):
        source = "class Outer:\n    class Inner:\n        def go(self) -> None:\n            pass\n"
        (method,) = analyze_source(source)
        assert method.class_name == "Outer.Inner"
        assert method.fully_qualified_name == "Outer.Inner.go"

    def test_varargs_and_kwargs(self):
        source = "def f(a, *args: int, key=None, **kwargs):\n    return a\n"
        (method,) = analyze_source(source)
        assert method.signature == "f(a, int *args, key, **kwargs)"

    def test_classmethod_skips_cls(self):
        source = "class A:\n    @classmethod\n    def build(cls, size: int) -> 'A':\n        return cls()\n"
        (method,) = analyze_source(source)
        assert method.is_static is True
        assert method.parameters == (ParameterInfo("int", "size"),)

    def test_reraise_of_variable_not_reported(self):
        source = (
            "def f():\n"
            "    try:\n"
            "        g()\n"
            "    except OSError as err:\n"
            "        raise err\n"
        )
        (method,) = analyze_source(source)
        assert method.exceptions == frozenset()

    def test_nested_function_raises_not_attributed(self):
        source = (
            "def outer():\n"
            "    def inner():\n"
            "        raise KeyError('x')\n"
            "    return inner\n"
        )
        (method,) = analyze_source(source)
        assert method.exceptions == frozenset()

    def test_async_function(self):
        (method,) = analyze_source("async def fetch(url: str) -> bytes:\n    return b''\n")
        assert method.method_name == "fetch"
        assert method.return_type == "bytes"

    def test_syntax_error(self):
        with pytest.raises(ParseError) as exc_info:
            analyze_source("def broken(:\n    pass\n")
        assert exc_info.value.line == 1
        assert "Syntax error" in str(exc_info.value)

    def test_empty_source(self):
        assert analyze_source("") == []


class TestFiles:
    def test_package_name_for(self, tmp_path):
        assert package_name_for(tmp_path / "shop" / "cart.py", tmp_path) == "shop.cart"
        assert package_name_for(tmp_path / "shop" / "__init__.py", tmp_path) == "shop"
        assert package_name_for(tmp_path / "cart.py") == "cart"

    def test_analyze_file_derives_package(self, tmp_path, calculator_source):
        path = tmp_path / "calc.py"
        path.write_text(calculator_source, encoding="utf-8")

        methods = analyze_file(path)
        assert {m.package_name for m in methods} == {"calc"}

    def test_analyze_missing_file(self, tmp_path):
        with pytest.raises(ParseError) as exc_info:
            analyze_file(tmp_path / "absent.py")
        assert exc_info.value.path == str(tmp_path / "absent.py")

    def test_scan_directory_skips_broken_files(self, tmp_path, calculator_source):
        (tmp_path / "shop").mkdir()
        (tmp_path / "shop" / "calc.py").write_text(calculator_source, encoding="utf-8")
        (tmp_path / "shop" / "broken.py").write_text("def (:\n", encoding="utf-8")

        methods = scan_directory(tmp_path)

        assert len(methods) == 4
        assert {m.package_name for m in methods} == {"shop.calc"}


class TestFindMethods:
    def test_filters(self, calculator_source):
        methods = analyze_source(calculator_source)

        assert [m.method_name for m in find_methods(methods, class_name="Calculator")] == [
            "add",
            "divide",
            "identity",
        ]
        assert [m.method_name for m in find_methods(methods, method_name="add")] == ["add"]
        assert find_methods(methods, class_name="Calculator", method_name="parse_amount") == []


class TestMethodInfo:
    def test_is_immutable_and_hashable(self):
        info = MethodInfo(
            package_name="shop",
            class_name="Calculator",
            method_name="add",
            parameters=[ParameterInfo("int", "a")],
            exceptions={"ValueError"},
            additional_context={"api_doc": "Adds"},
        )

        assert isinstance(info.parameters, tuple)
        assert isinstance(info.exceptions, frozenset)
        with pytest.raises(AttributeError):
            info.method_name = "sub"
        with pytest.raises(TypeError):
            info.additional_context["api_doc"] = "changed"
        assert hash(info) == hash(info)
