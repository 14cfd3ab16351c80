"""Test generation from analyzed methods."""

from .errors import GenerationError, InvalidInputError
from .fallback import FALLBACK_MARKER, build_fallback_test
from .generator import (
    FALLBACK_CONFIDENCE,
    MODEL_CONFIDENCE,
    GenerationFailure,
    GenerationReport,
    TestGenerator,
    extract_assertions,
)
from .prompts import build_test_prompt

__all__ = [
    # Generator
    "TestGenerator",
    "GenerationReport",
    "GenerationFailure",
    "extract_assertions",
    "MODEL_CONFIDENCE",
    "FALLBACK_CONFIDENCE",
    # Prompts
    "build_test_prompt",
    # Fallback
    "build_fallback_test",
    "FALLBACK_MARKER",
    # Errors
    "GenerationError",
    "InvalidInputError",
]
