"""Model status values and state snapshots."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path


class ModelStatus(str, Enum):
    """Lifecycle status of a named model."""

    NOT_LOADED = "not_loaded"
    LOADING = "loading"
    LOADED = "loaded"
    ERROR = "error"


@dataclass(frozen=True)
class ModelState:
    """Point-in-time view of a model slot."""

    name: str
    status: ModelStatus
    error: str | None = None
    attempts: int = 0
    loaded_at: datetime | None = None


@dataclass(frozen=True)
class LocalModel:
    """What a model has on disk under the models directory."""

    name: str
    path: Path
    present: bool
    quantized_path: Path | None = None
