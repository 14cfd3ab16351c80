"""Data models for analyzed methods."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ParameterInfo:
    """A single parameter of an analyzed method."""

    type: str  # annotation text, empty when unannotated
    name: str

    def __str__(self) -> str:
        return f"{self.type} {self.name}".strip()


@dataclass(frozen=True)
class MethodInfo:
    """Structured description of one method, used as input for test generation."""

    package_name: str
    class_name: str
    method_name: str
    return_type: str = ""
    parameters: tuple[ParameterInfo, ...] = ()
    exceptions: frozenset[str] = frozenset()
    doc_comment: str = ""
    is_public: bool = True
    is_static: bool = False
    body: str = ""
    additional_context: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({}), hash=False
    )

    def __post_init__(self):
        # Accept lists and sets from callers while keeping the record immutable
        object.__setattr__(self, "parameters", tuple(self.parameters))
        object.__setattr__(self, "exceptions", frozenset(self.exceptions))
        object.__setattr__(self, "additional_context", MappingProxyType(dict(self.additional_context)))

    @property
    def signature(self) -> str:
        """Simple signature, e.g. ``add(int a, int b)``."""
        params = ", ".join(str(p) for p in self.parameters)
        return f"{self.method_name}({params})"

    @property
    def fully_qualified_name(self) -> str:
        """Dotted ``package.Class.method`` name, skipping empty parts."""
        parts = [self.package_name, self.class_name, self.method_name]
        return ".".join(p for p in parts if p)
