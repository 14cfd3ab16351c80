"""YAML loading and parsing for testoracle configuration."""

import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from .errors import ConfigLoadError, ConfigValidationError
from .models import OracleConfig

CONFIG_ENV_VAR = "TESTORACLE_CONFIG"


def load_yaml(path: str | Path) -> dict:
    """Load a YAML file and return the raw data.

    Args:
        path: Path to the YAML file.

    Returns:
        The parsed YAML data as a dictionary.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
    """
    path = Path(path)

    if not path.exists():
        raise ConfigLoadError(f"File not found: {path}", str(path))

    if not path.is_file():
        raise ConfigLoadError(f"Not a file: {path}", str(path))

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML: {e}", str(path)) from e
    except OSError as e:
        raise ConfigLoadError(f"Cannot read file: {e}", str(path)) from e

    if data is None:
        return {}

    if not isinstance(data, dict):
        raise ConfigLoadError(
            f"Expected YAML mapping at root, got {type(data).__name__}", str(path)
        )

    return data


def load_config(path: str | Path | None = None) -> OracleConfig:
    """Load configuration from a YAML file.

    When ``path`` is omitted the ``TESTORACLE_CONFIG`` environment variable is
    consulted; with neither set the defaults are returned.

    Raises:
        ConfigLoadError: If the file cannot be read or parsed.
        ConfigValidationError: If the data fails validation.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV_VAR)
    if not path:
        return OracleConfig()
    return _parse_config_data(load_yaml(path))


def load_config_from_string(yaml_string: str) -> OracleConfig:
    """Parse a YAML string into an OracleConfig.

    Raises:
        ConfigLoadError: If the YAML cannot be parsed.
        ConfigValidationError: If the data fails validation.
    """
    try:
        data = yaml.safe_load(yaml_string)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML: {e}") from e

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigLoadError(f"Expected YAML mapping at root, got {type(data).__name__}")

    return _parse_config_data(data)


def _parse_config_data(data: dict) -> OracleConfig:
    try:
        return OracleConfig.model_validate(data)
    except ValidationError as e:
        errors = [
            {
                "loc": ".".join(str(x) for x in err["loc"]),
                "msg": err["msg"],
                "type": err["type"],
            }
            for err in e.errors()
        ]
        raise ConfigValidationError(
            f"Configuration validation failed with {len(errors)} error(s)", errors
        ) from e
