"""Pydantic models for testoracle configuration."""

import sys
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator


class QuantizationLevel(str, Enum):
    """Precision the language model weights are stored at before loading."""

    FP32 = "FP32"  # full precision, no rewrite
    FP16 = "FP16"
    BF16 = "BF16"


class ModelsConfig(BaseModel):
    """Named models and where their artifacts live."""

    language_model: str = "gpt2-medium"
    embedding_model: str = "all-MiniLM-L6-v2"
    base_dir: Path = Path("models")
    cache_dir: Path = Path("cache")
    repositories: dict[str, str] = Field(
        default_factory=lambda: {
            "gpt2-medium": "openai-community/gpt2-medium",
            "all-MiniLM-L6-v2": "sentence-transformers/all-MiniLM-L6-v2",
        }
    )
    quantize: bool = True
    quantization_level: QuantizationLevel = QuantizationLevel.FP16
    max_load_retries: int = Field(default=3, ge=1)
    retry_backoff_seconds: float = Field(default=1.0, ge=0)
    device: str = "cpu"

    @field_validator("quantization_level", mode="before")
    @classmethod
    def normalize_level(cls, value):
        """Accept lowercase level names such as ``fp16``."""
        if isinstance(value, str):
            return value.upper()
        return value

    def model_path(self, name: str) -> Path:
        """Directory holding the artifacts of a named model."""
        return self.base_dir / name

    def repository_for(self, name: str) -> str:
        """Hub repository id for a model, defaulting to the name itself."""
        return self.repositories.get(name, name)


class WorkersConfig(BaseModel):
    """Bounded worker pool sizing."""

    max_workers: int = Field(default=4, ge=1)
    queue_capacity: int = Field(default=32, ge=0)


class TimeoutsConfig(BaseModel):
    """Per-operation time bounds, in seconds."""

    load_seconds: float = Field(default=120.0, gt=0)
    execution_seconds: float = Field(default=60.0, gt=0)


class GenerationConfig(BaseModel):
    """Test generation settings."""

    max_tokens: int = Field(default=500, ge=1)
    fallback_to_rule_based: bool = False


class StorageConfig(BaseModel):
    """Where test cases are persisted."""

    output_dir: Path = Path("output")
    backend: Literal["json", "memory"] = "json"

    @property
    def testcases_dir(self) -> Path:
        return self.output_dir / "testcases"


class ExecutionConfig(BaseModel):
    """How generated tests are run."""

    python: str = Field(default_factory=lambda: sys.executable)
    source_roots: list[Path] = Field(default_factory=list)
    pytest_args: list[str] = Field(default_factory=list)


class OracleConfig(BaseModel):
    """Root configuration object."""

    models: ModelsConfig = Field(default_factory=ModelsConfig)
    workers: WorkersConfig = Field(default_factory=WorkersConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)

    @model_validator(mode="before")
    @classmethod
    def normalize_sections(cls, data: dict) -> dict:
        """Treat empty YAML sections (``models:``) as defaults."""
        if not isinstance(data, dict):
            return data

        for key in list(data.keys()):
            if data[key] is None:
                data.pop(key)

        # Shorthand: source_roots given as a single path
        execution = data.get("execution")
        if isinstance(execution, dict):
            roots = execution.get("source_roots")
            if isinstance(roots, str):
                execution["source_roots"] = [roots]

        return data
