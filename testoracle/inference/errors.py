"""Exception classes for the model lifecycle."""


class InferenceError(Exception):
    """Base exception for model lifecycle errors."""

    pass


class ModelNotReadyError(InferenceError):
    """Raised when a generation call targets a model that is not loaded."""

    def __init__(self, message: str, model_name: str | None = None):
        self.model_name = model_name
        super().__init__(message)


class ModelLoadError(InferenceError):
    """Raised when downloading, quantizing or loading a model fails."""

    def __init__(self, message: str, model_name: str | None = None, attempts: int = 0):
        self.model_name = model_name
        self.attempts = attempts
        super().__init__(message)


class BackendUnavailableError(ModelLoadError):
    """Raised when the libraries needed to run a local model are missing."""

    def __init__(
        self,
        message: str = (
            "The transformers and torch packages are not installed. "
            "Install them with: pip install testoracle[local]"
        ),
    ):
        super().__init__(message)
