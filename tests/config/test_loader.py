"""Tests for configuration loading."""

from pathlib import Path

import pytest

from testoracle.config.errors import ConfigLoadError, ConfigValidationError
from testoracle.config.loader import (
    CONFIG_ENV_VAR,
    load_config,
    load_config_from_string,
    load_yaml,
)
from testoracle.config.models import OracleConfig, QuantizationLevel


class TestLoadYaml:
    def test_load_valid_yaml(self, tmp_path):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("workers:\n  max_workers: 8")

        data = load_yaml(yaml_file)
        assert data == {"workers": {"max_workers": 8}}

    def test_file_not_found(self):
        with pytest.raises(ConfigLoadError) as exc_info:
            load_yaml("/nonexistent/config.yaml")
        assert "not found" in str(exc_info.value).lower()
        assert exc_info.value.path == "/nonexistent/config.yaml"

    def test_invalid_yaml(self, tmp_path):
        yaml_file = tmp_path / "invalid.yaml"
        yaml_file.write_text("models: [unclosed")

        with pytest.raises(ConfigLoadError) as exc_info:
            load_yaml(yaml_file)
        assert "Invalid YAML" in str(exc_info.value)

    def test_non_mapping_at_root(self, tmp_path):
        yaml_file = tmp_path / "list.yaml"
        yaml_file.write_text("- a\n- b")

        with pytest.raises(ConfigLoadError) as exc_info:
            load_yaml(yaml_file)
        assert "mapping" in str(exc_info.value).lower()


class TestDefaults:
    def test_defaults(self):
        config = OracleConfig()

        assert config.models.language_model == "gpt2-medium"
        assert config.models.embedding_model == "all-MiniLM-L6-v2"
        assert config.models.quantize is True
        assert config.models.quantization_level == QuantizationLevel.FP16
        assert config.models.max_load_retries == 3
        assert config.workers.max_workers == 4
        assert config.workers.queue_capacity == 32
        assert config.timeouts.load_seconds == 120
        assert config.timeouts.execution_seconds == 60
        assert config.generation.max_tokens == 500
        assert config.generation.fallback_to_rule_based is False
        assert config.storage.testcases_dir == Path("output") / "testcases"

    def test_model_path_and_repository(self):
        models = OracleConfig().models

        assert models.model_path("gpt2-medium") == Path("models") / "gpt2-medium"
        assert models.repository_for("gpt2-medium") == "openai-community/gpt2-medium"
        assert models.repository_for("org/custom") == "org/custom"


class TestLoadConfigFromString:
    def test_empty_string_gives_defaults(self):
        assert load_config_from_string("") == OracleConfig()

    def test_empty_sections_use_defaults(self):
        config = load_config_from_string("models:\nworkers:\n")
        assert config.models.language_model == "gpt2-medium"
        assert config.workers.max_workers == 4

    def test_lowercase_quantization_level(self):
        config = load_config_from_string("models:\n  quantization_level: bf16")
        assert config.models.quantization_level == QuantizationLevel.BF16

    def test_single_source_root(self):
        config = load_config_from_string("execution:\n  source_roots: src")
        assert config.execution.source_roots == [Path("src")]

    def test_validation_errors_are_collected(self):
        yaml_str = """
workers:
  max_workers: 0
timeouts:
  load_seconds: -1
"""
        with pytest.raises(ConfigValidationError) as exc_info:
            load_config_from_string(yaml_str)

        locations = {err["loc"] for err in exc_info.value.errors}
        assert "workers.max_workers" in locations
        assert "timeouts.load_seconds" in locations
        assert "2 error(s)" in str(exc_info.value)

    def test_unknown_backend_rejected(self):
        with pytest.raises(ConfigValidationError):
            load_config_from_string("storage:\n  backend: redis")


class TestLoadConfig:
    def test_no_path_no_env_gives_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
        assert load_config() == OracleConfig()

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        yaml_file = tmp_path / "oracle.yaml"
        yaml_file.write_text("generation:\n  max_tokens: 64")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(yaml_file))

        assert load_config().generation.max_tokens == 64

    def test_explicit_path_wins_over_env(self, tmp_path, monkeypatch):
        env_file = tmp_path / "env.yaml"
        env_file.write_text("generation:\n  max_tokens: 64")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("generation:\n  max_tokens: 128")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(env_file))

        assert load_config(explicit).generation.max_tokens == 128
