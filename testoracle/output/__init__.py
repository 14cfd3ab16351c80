"""Text and JSON rendering for command output."""

from .formatter import format_methods, format_local_models, format_test_cases

__all__ = ["format_methods", "format_local_models", "format_test_cases"]
