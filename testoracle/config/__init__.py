"""Configuration layer: YAML files validated into pydantic models."""

from .errors import ConfigLoadError, ConfigValidationError
from .loader import CONFIG_ENV_VAR, load_config, load_config_from_string, load_yaml
from .models import (
    ExecutionConfig,
    GenerationConfig,
    ModelsConfig,
    OracleConfig,
    QuantizationLevel,
    StorageConfig,
    TimeoutsConfig,
    WorkersConfig,
)

__all__ = [
    "ConfigLoadError",
    "ConfigValidationError",
    "CONFIG_ENV_VAR",
    "load_config",
    "load_config_from_string",
    "load_yaml",
    "ExecutionConfig",
    "GenerationConfig",
    "ModelsConfig",
    "OracleConfig",
    "QuantizationLevel",
    "StorageConfig",
    "TimeoutsConfig",
    "WorkersConfig",
]
