"""Collaborators that fetch, quantize and load local Hugging Face models.

The heavy libraries (``transformers``, ``torch``) are imported lazily so the
rest of testoracle works without them; ``huggingface_hub`` is only touched
when a model actually has to be downloaded.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Protocol

from ..config.models import QuantizationLevel
from .errors import BackendUnavailableError, InferenceError, ModelLoadError

logger = logging.getLogger(__name__)

# Any one of these counts as model weights
WEIGHT_FILES = ("model.safetensors", "pytorch_model.bin", "pytorch_model.pt")
CONFIG_FILE = "config.json"


def has_model_artifacts(path: Path) -> bool:
    """Check that a directory holds a model config and at least one weight file."""
    if not (path / CONFIG_FILE).is_file():
        return False
    if any((path / weight).is_file() for weight in WEIGHT_FILES):
        return True
    # Sharded checkpoints
    return any(path.glob("model-*.safetensors")) or any(path.glob("pytorch_model-*.bin"))


def quantized_path(source: Path, level: QuantizationLevel) -> Path:
    """Directory holding the weights of ``source`` rewritten at ``level``."""
    if level == QuantizationLevel.FP32:
        return source
    return source.parent / f"{source.name}-{level.value.lower()}"


class LoadedModel(Protocol):
    """Opaque handle to a model that is ready for inference."""

    def generate(self, prompt: str, max_tokens: int) -> str: ...

    def embed(self, text: str) -> list[float]: ...

    def close(self) -> None: ...


class ModelLoader(Protocol):
    def is_present(self, path: Path) -> bool: ...

    def load(self, name: str, path: Path) -> LoadedModel: ...


class ModelDownloader(Protocol):
    def download(self, name: str, destination: Path) -> Path: ...


class ModelQuantizer(Protocol):
    def quantize(self, name: str, source: Path, level: QuantizationLevel) -> Path: ...


def _import_torch_stack() -> tuple[Any, Any]:
    try:
        import torch
        import transformers
    except ImportError as e:
        raise BackendUnavailableError() from e
    return torch, transformers


class TransformersTextModel:
    """Causal language model with greedy (deterministic) decoding."""

    def __init__(self, name: str, model: Any, tokenizer: Any, device: str):
        self.name = name
        self._model = model
        self._tokenizer = tokenizer
        self._device = device

    def generate(self, prompt: str, max_tokens: int) -> str:
        torch, _ = _import_torch_stack()
        inputs = self._tokenizer(prompt, return_tensors="pt").to(self._device)
        with torch.no_grad():
            output = self._model.generate(
                **inputs,
                max_new_tokens=max_tokens,
                do_sample=False,
                pad_token_id=self._tokenizer.eos_token_id,
            )
        prompt_length = inputs["input_ids"].shape[1]
        return self._tokenizer.decode(output[0][prompt_length:], skip_special_tokens=True)

    def embed(self, text: str) -> list[float]:
        raise InferenceError(f"Model '{self.name}' is a text generation model")

    def close(self) -> None:
        self._model = None
        self._tokenizer = None
        _release_device_memory()


class TransformersEmbeddingModel:
    """Encoder model producing mean-pooled sentence embeddings."""

    def __init__(self, name: str, model: Any, tokenizer: Any, device: str):
        self.name = name
        self._model = model
        self._tokenizer = tokenizer
        self._device = device

    def generate(self, prompt: str, max_tokens: int) -> str:
        raise InferenceError(f"Model '{self.name}' is an embedding model")

    def embed(self, text: str) -> list[float]:
        torch, _ = _import_torch_stack()
        inputs = self._tokenizer(text, return_tensors="pt", truncation=True).to(self._device)
        with torch.no_grad():
            hidden = self._model(**inputs).last_hidden_state
        mask = inputs["attention_mask"].unsqueeze(-1).to(hidden.dtype)
        pooled = (hidden * mask).sum(dim=1) / mask.sum(dim=1).clamp(min=1e-9)
        return pooled[0].tolist()

    def close(self) -> None:
        self._model = None
        self._tokenizer = None
        _release_device_memory()


def _release_device_memory() -> None:
    try:
        import torch
    except ImportError:
        return
    if torch.cuda.is_available():
        torch.cuda.empty_cache()


class TransformersLoader:
    """Load models from local directories with ``transformers``."""

    def __init__(self, device: str = "cpu", embedding_models: frozenset[str] = frozenset()):
        self.device = device
        self.embedding_models = embedding_models

    def is_present(self, path: Path) -> bool:
        return has_model_artifacts(path)

    def load(self, name: str, path: Path) -> LoadedModel:
        _, transformers = _import_torch_stack()
        logger.info("Loading model %s from %s on %s", name, path, self.device)

        try:
            tokenizer = transformers.AutoTokenizer.from_pretrained(path)
            if name in self.embedding_models:
                model = transformers.AutoModel.from_pretrained(path)
                wrapper_cls: Callable[..., LoadedModel] = TransformersEmbeddingModel
            else:
                model = transformers.AutoModelForCausalLM.from_pretrained(path)
                wrapper_cls = TransformersTextModel
            model.to(self.device)
            model.eval()
        except (OSError, ValueError) as e:
            raise ModelLoadError(f"Cannot load model '{name}' from {path}: {e}", model_name=name) from e

        return wrapper_cls(name, model, tokenizer, self.device)


class HubDownloader:
    """Fetch model snapshots from the Hugging Face hub."""

    ALLOW_PATTERNS = ["*.json", "*.safetensors", "*.bin", "*.txt", "*.model"]

    def __init__(self, resolve_repository: Callable[[str], str], cache_dir: Path | None = None):
        self.resolve_repository = resolve_repository
        self.cache_dir = cache_dir

    def download(self, name: str, destination: Path) -> Path:
        from huggingface_hub import snapshot_download

        repo_id = self.resolve_repository(name)
        logger.info("Downloading model %s from hub repository %s to %s", name, repo_id, destination)
        destination.mkdir(parents=True, exist_ok=True)

        try:
            path = snapshot_download(
                repo_id=repo_id,
                local_dir=destination,
                cache_dir=self.cache_dir,
                allow_patterns=self.ALLOW_PATTERNS,
            )
        except Exception as e:
            raise ModelLoadError(f"Failed to download model '{name}' ({repo_id}): {e}", model_name=name) from e

        logger.info("Model %s downloaded to %s", name, path)
        return Path(path)


class TransformersQuantizer:
    """Rewrite causal LM weights at reduced precision into a sibling directory."""

    def quantize(self, name: str, source: Path, level: QuantizationLevel) -> Path:
        target = quantized_path(source, level)
        if target == source:
            return source

        if has_model_artifacts(target):
            logger.info("Using cached %s weights for %s at %s", level.value, name, target)
            return target

        torch, transformers = _import_torch_stack()
        dtype = {
            QuantizationLevel.FP16: torch.float16,
            QuantizationLevel.BF16: torch.bfloat16,
        }[level]

        logger.info("Quantizing model %s to %s", name, level.value)
        try:
            model = transformers.AutoModelForCausalLM.from_pretrained(source, torch_dtype=dtype)
            tokenizer = transformers.AutoTokenizer.from_pretrained(source)
            target.mkdir(parents=True, exist_ok=True)
            model.save_pretrained(target)
            tokenizer.save_pretrained(target)
        except (OSError, ValueError) as e:
            raise ModelLoadError(f"Failed to quantize model '{name}': {e}", model_name=name) from e

        logger.info("Model %s quantized to %s", name, target)
        return target
