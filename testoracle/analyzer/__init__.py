"""Static analysis of Python source into method descriptions."""

from .errors import ParseError
from .models import MethodInfo, ParameterInfo
from .parser import analyze_file, analyze_source, find_methods, package_name_for, scan_directory

__all__ = [
    # Models
    "MethodInfo",
    "ParameterInfo",
    # Errors
    "ParseError",
    # Parser
    "analyze_source",
    "analyze_file",
    "scan_directory",
    "find_methods",
    "package_name_for",
]
