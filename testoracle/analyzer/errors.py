"""Code analysis exceptions."""


class ParseError(Exception):
    """Raised when source text cannot be parsed."""

    def __init__(self, message: str, path: str | None = None, line: int | None = None):
        self.path = path
        self.line = line
        super().__init__(message)
