"""Test generation exceptions."""


class GenerationError(Exception):
    """Base exception for test generation errors."""

    pass


class InvalidInputError(GenerationError):
    """Raised when a method description cannot be turned into a test."""

    def __init__(self, message: str, method_name: str | None = None):
        self.method_name = method_name
        super().__init__(message)
