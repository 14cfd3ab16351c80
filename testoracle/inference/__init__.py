"""Model lifecycle management for locally hosted inference models."""

from ..config.models import QuantizationLevel
from .backends import (
    HubDownloader,
    LoadedModel,
    ModelDownloader,
    ModelLoader,
    ModelQuantizer,
    TransformersLoader,
    TransformersQuantizer,
    has_model_artifacts,
    quantized_path,
)
from .errors import BackendUnavailableError, InferenceError, ModelLoadError, ModelNotReadyError
from .manager import ModelManager
from .status import LocalModel, ModelState, ModelStatus

__all__ = [
    # Manager
    "ModelManager",
    "LocalModel",
    "ModelState",
    "ModelStatus",
    "QuantizationLevel",
    # Errors
    "InferenceError",
    "ModelNotReadyError",
    "ModelLoadError",
    "BackendUnavailableError",
    # Backends
    "LoadedModel",
    "ModelLoader",
    "ModelDownloader",
    "ModelQuantizer",
    "TransformersLoader",
    "HubDownloader",
    "TransformersQuantizer",
    "has_model_artifacts",
    "quantized_path",
]
