"""Extract method metadata from Python source using the ``ast`` module.

Source is parsed, never imported or executed.
"""

import ast
import logging
import re
import textwrap
from pathlib import Path

from .errors import ParseError
from .models import MethodInfo, ParameterInfo

logger = logging.getLogger(__name__)

# ":raises ValueError:" (reST) style
RAISES_FIELD_PATTERN = re.compile(r":raises?\s+([A-Za-z_][\w.]*)\s*:")

# Google style "Raises:" section entries, e.g. "    ValueError: if ..."
RAISES_SECTION_PATTERN = re.compile(r"^[ \t]*Raises:[ \t]*$", re.MULTILINE)
RAISES_ENTRY_PATTERN = re.compile(r"^\s+([A-Za-z_][\w.]*)\s*:")

STATIC_DECORATORS = {"staticmethod", "classmethod"}
IMPLICIT_FIRST_PARAMS = {"self", "cls"}


def analyze_source(
    source: str,
    package_name: str = "",
    include_private: bool = False,
    filename: str = "<source>",
) -> list[MethodInfo]:
    """Parse Python source and describe its testable methods.

    Module-level functions are reported with an empty ``class_name``; methods
    of nested classes use a dotted class name such as ``Outer.Inner``.

    Args:
        source: The Python source text.
        package_name: Dotted module path the source belongs to.
        include_private: Also report ``_private`` functions and methods.
        filename: Name used in syntax error messages.

    Returns:
        MethodInfo records in source order.

    Raises:
        ParseError: If the source is not valid Python.
    """
    try:
        tree = ast.parse(source, filename=filename)
    except SyntaxError as e:
        raise ParseError(
            f"Syntax error: {e.msg} at line {e.lineno}", path=filename, line=e.lineno
        ) from e
    except ValueError as e:
        # Null bytes and similar
        raise ParseError(f"Cannot parse source: {e}", path=filename) from e

    lines = source.splitlines()
    methods: list[MethodInfo] = []
    _collect(tree.body, lines, package_name, "", include_private, methods)
    return methods


def _collect(
    nodes: list[ast.stmt],
    lines: list[str],
    package_name: str,
    class_name: str,
    include_private: bool,
    methods: list[MethodInfo],
) -> None:
    for node in nodes:
        if isinstance(node, ast.ClassDef):
            if _is_private(node.name) and not include_private:
                continue
            qualified = f"{class_name}.{node.name}" if class_name else node.name
            _collect(node.body, lines, package_name, qualified, include_private, methods)
        elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
            is_public = not _is_private(node.name)
            if not is_public and not include_private:
                continue
            methods.append(_method_info(node, lines, package_name, class_name, is_public))


def _is_private(name: str) -> bool:
    # Dunders such as __init__ are not direct test targets either
    return name.startswith("_")


def _method_info(
    node: ast.FunctionDef | ast.AsyncFunctionDef,
    lines: list[str],
    package_name: str,
    class_name: str,
    is_public: bool,
) -> MethodInfo:
    decorators = {_decorator_name(d) for d in node.decorator_list}
    is_static = not class_name or bool(decorators & STATIC_DECORATORS)
    # self / cls is implicit for everything but static methods
    bound = bool(class_name) and "staticmethod" not in decorators
    doc = _docstring(node)

    return MethodInfo(
        package_name=package_name,
        class_name=class_name,
        method_name=node.name,
        return_type=ast.unparse(node.returns) if node.returns else "",
        parameters=tuple(_parameters(node.args, skip_first=bound)),
        exceptions=frozenset(_raised_names(node) | _documented_raises(doc)),
        doc_comment=doc,
        is_public=is_public,
        is_static=is_static,
        body=_body_source(node, lines),
    )


def _decorator_name(decorator: ast.expr) -> str:
    if isinstance(decorator, ast.Call):
        decorator = decorator.func
    if isinstance(decorator, ast.Attribute):
        return decorator.attr
    if isinstance(decorator, ast.Name):
        return decorator.id
    return ""


def _parameters(args: ast.arguments, skip_first: bool) -> list[ParameterInfo]:
    positional = [*args.posonlyargs, *args.args]
    if skip_first and positional and positional[0].arg in IMPLICIT_FIRST_PARAMS:
        positional = positional[1:]

    params = [_parameter(a) for a in positional]
    if args.vararg:
        params.append(_parameter(args.vararg, prefix="*"))
    params.extend(_parameter(a) for a in args.kwonlyargs)
    if args.kwarg:
        params.append(_parameter(args.kwarg, prefix="**"))
    return params


def _parameter(arg: ast.arg, prefix: str = "") -> ParameterInfo:
    annotation = ast.unparse(arg.annotation) if arg.annotation else ""
    return ParameterInfo(type=annotation, name=f"{prefix}{arg.arg}")


def _docstring(node: ast.AST) -> str:
    return ast.get_docstring(node) or ""


def _raised_names(node: ast.FunctionDef | ast.AsyncFunctionDef) -> set[str]:
    """Exception class names raised directly in the function body."""
    names: set[str] = set()
    for child in _walk_own_body(node):
        if not isinstance(child, ast.Raise) or child.exc is None:
            continue
        exc = child.exc.func if isinstance(child.exc, ast.Call) else child.exc
        if isinstance(exc, (ast.Name, ast.Attribute)):
            name = ast.unparse(exc)
            # "raise err" re-raises a variable, not a class
            if name.split(".")[-1][:1].isupper():
                names.add(name)
    return names


def _walk_own_body(node: ast.AST):
    """Like ast.walk, but does not descend into nested functions or classes."""
    stack = list(ast.iter_child_nodes(node))
    while stack:
        child = stack.pop()
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef, ast.Lambda)):
            continue
        yield child
        stack.extend(ast.iter_child_nodes(child))


def _documented_raises(doc: str) -> set[str]:
    if not doc:
        return set()

    names = set(RAISES_FIELD_PATTERN.findall(doc))

    section = RAISES_SECTION_PATTERN.search(doc)
    if section:
        for line in doc[section.end():].splitlines()[1:]:
            if not line.strip():
                break
            match = RAISES_ENTRY_PATTERN.match(line)
            if match:
                names.add(match.group(1))
            elif not line.startswith((" ", "\t")):
                break
    return names


def _is_docstring_expr(stmt: ast.stmt) -> bool:
    return (
        isinstance(stmt, ast.Expr)
        and isinstance(stmt.value, ast.Constant)
        and isinstance(stmt.value.value, str)
    )


def _body_source(node: ast.FunctionDef | ast.AsyncFunctionDef, lines: list[str]) -> str:
    body = node.body
    if len(body) > 1 and _is_docstring_expr(body[0]):
        body = body[1:]
    start = body[0].lineno - 1
    end = node.end_lineno or body[-1].end_lineno or start + 1
    return textwrap.dedent("\n".join(lines[start:end])).strip("\n")


def package_name_for(path: Path, root: Path | None = None) -> str:
    """Derive a dotted module path from a file path.

    ``src/shop/cart.py`` relative to ``src`` becomes ``shop.cart``;
    ``__init__.py`` maps to its package.
    """
    path = Path(path)
    relative = path.relative_to(root) if root else Path(path.name)
    parts = list(relative.with_suffix("").parts)
    if parts and parts[-1] == "__init__":
        parts.pop()
    return ".".join(parts)


def analyze_file(
    path: str | Path,
    package_name: str | None = None,
    include_private: bool = False,
) -> list[MethodInfo]:
    """Read a UTF-8 Python file and analyze it.

    Raises:
        ParseError: If the file cannot be read or parsed.
    """
    path = Path(path)
    try:
        source = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ParseError(f"Cannot read file: {e}", path=str(path)) from e

    if package_name is None:
        package_name = package_name_for(path)

    methods = analyze_source(source, package_name, include_private, filename=str(path))
    logger.info("Found %d methods in %s", len(methods), path)
    return methods


def scan_directory(root: str | Path, include_private: bool = False) -> list[MethodInfo]:
    """Analyze every ``*.py`` file below ``root``.

    Files that fail to parse are skipped with a warning.
    """
    root = Path(root)
    methods: list[MethodInfo] = []
    for path in sorted(root.rglob("*.py")):
        try:
            methods.extend(
                analyze_file(path, package_name_for(path, root), include_private=include_private)
            )
        except ParseError as e:
            logger.warning("Skipping %s: %s", path, e)
    return methods


def find_methods(
    methods: list[MethodInfo],
    class_name: str | None = None,
    method_name: str | None = None,
) -> list[MethodInfo]:
    """Filter analyzed methods by class and/or method name."""
    return [
        m
        for m in methods
        if (class_name is None or m.class_name == class_name)
        and (method_name is None or m.method_name == method_name)
    ]
