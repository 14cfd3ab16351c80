"""Lifecycle manager for locally hosted inference models.

Each named model owns one slot whose status moves through
``NOT_LOADED -> LOADING -> LOADED | ERROR``. Every transition happens under
the manager lock, and each load attempt is tagged with a generation number so
that a result arriving after an unload or a timeout is discarded rather than
overwriting newer state.
"""

import logging
import shutil
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from ..config.models import OracleConfig, QuantizationLevel
from ..workers import Overloaded, WorkerPool
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
from .status import LocalModel, ModelState, ModelStatus

logger = logging.getLogger(__name__)


@dataclass
class _ModelSlot:
    status: ModelStatus = ModelStatus.NOT_LOADED
    handle: LoadedModel | None = None
    error: str | None = None
    attempts: int = 0
    loaded_at: datetime | None = None
    generation: int = 0
    settled: threading.Event = field(default_factory=threading.Event)
    deadline: threading.Timer | None = None


class ModelManager:
    """Loads named models at most once and shares them between callers.

    ``generate_text`` and ``embed`` trigger loading on demand and wait for it
    up to ``timeouts.load_seconds``. A model that failed to load stays in
    ``ERROR`` until :meth:`retry` is called.
    """

    def __init__(
        self,
        config: OracleConfig | None = None,
        loader: ModelLoader | None = None,
        downloader: ModelDownloader | None = None,
        quantizer: ModelQuantizer | None = None,
        pool: WorkerPool | None = None,
    ):
        self.config = config or OracleConfig()
        models = self.config.models
        self.loader: ModelLoader = loader or TransformersLoader(
            device=models.device,
            embedding_models=frozenset({models.embedding_model}),
        )
        self.downloader = downloader
        self.quantizer = quantizer

        self._owns_pool = pool is None
        self._pool = pool or WorkerPool(
            max_workers=self.config.workers.max_workers,
            queue_capacity=self.config.workers.queue_capacity,
            name="model-loader",
        )
        self._lock = threading.Lock()
        self._slots: dict[str, _ModelSlot] = {}

    @classmethod
    def from_config(cls, config: OracleConfig, pool: WorkerPool | None = None) -> "ModelManager":
        """Build a manager wired to the Hugging Face download and quantize stack."""
        models = config.models
        return cls(
            config=config,
            downloader=HubDownloader(models.repository_for, cache_dir=models.cache_dir),
            quantizer=TransformersQuantizer(),
            pool=pool,
        )

    # -------------------------------------------------------------------------
    # Status queries
    # -------------------------------------------------------------------------

    def get_model_status(self, name: str) -> ModelStatus:
        with self._lock:
            slot = self._slots.get(name)
            return slot.status if slot else ModelStatus.NOT_LOADED

    def is_model_loaded(self, name: str) -> bool:
        return self.get_model_status(name) == ModelStatus.LOADED

    def is_model_loading(self, name: str) -> bool:
        return self.get_model_status(name) == ModelStatus.LOADING

    def describe(self, name: str) -> ModelState:
        """Snapshot of a model's status, last error and load attempts."""
        with self._lock:
            slot = self._slots.get(name)
            if slot is None:
                return ModelState(name=name, status=ModelStatus.NOT_LOADED)
            return ModelState(
                name=name,
                status=slot.status,
                error=slot.error,
                attempts=slot.attempts,
                loaded_at=slot.loaded_at,
            )

    def known_models(self) -> list[str]:
        """Configured model names plus any other name that was requested."""
        models = self.config.models
        names = [models.language_model, models.embedding_model]
        with self._lock:
            names.extend(n for n in self._slots if n not in names)
        return names

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def ensure_loaded(self, name: str, timeout: float | None = None) -> ModelStatus:
        """Load a model unless it is already loaded.

        Concurrent callers for the same name share one in-flight load. The
        ``timeout`` only bounds how long this caller waits: when it expires
        the load keeps going for the other callers and ``LOADING`` is
        returned. The load itself is abandoned, and the model put in
        ``ERROR``, once it has run for ``timeouts.load_seconds``.

        Args:
            name: The model name.
            timeout: Seconds to wait for the load; defaults to
                ``timeouts.load_seconds``.

        Returns:
            The model status once the wait ends.

        Raises:
            ModelLoadError: If the model is (or ends up) in ``ERROR``.
            Overloaded: If the loader pool cannot accept the load.
        """
        if timeout is None:
            timeout = self.config.timeouts.load_seconds

        with self._lock:
            slot = self._slots.setdefault(name, _ModelSlot())

            if slot.status == ModelStatus.LOADED:
                return slot.status

            if slot.status == ModelStatus.ERROR:
                raise ModelLoadError(
                    f"Model '{name}' failed to load: {slot.error}",
                    model_name=name,
                    attempts=slot.attempts,
                )

            if slot.status == ModelStatus.NOT_LOADED:
                self._start_load(name, slot)

            settled = slot.settled

        if not settled.wait(timeout):
            logger.info("Stopped waiting for model %s after %ss, load continues", name, timeout)

        with self._lock:
            slot = self._slots[name]
            if slot.status == ModelStatus.ERROR:
                raise ModelLoadError(
                    f"Model '{name}' failed to load: {slot.error}",
                    model_name=name,
                    attempts=slot.attempts,
                )
            return slot.status

    def retry(self, name: str, timeout: float | None = None) -> ModelStatus:
        """Clear a sticky ``ERROR`` and load the model again."""
        with self._lock:
            slot = self._slots.get(name)
            if slot is not None and slot.status == ModelStatus.ERROR:
                logger.info("Retrying model %s after error: %s", name, slot.error)
                slot.status = ModelStatus.NOT_LOADED
                slot.error = None
        return self.ensure_loaded(name, timeout=timeout)

    def _start_load(self, name: str, slot: _ModelSlot) -> None:
        """Submit a load for ``slot`` and arm its deadline; caller holds the lock."""
        slot.generation += 1
        slot.status = ModelStatus.LOADING
        slot.error = None
        slot.attempts = 0
        slot.settled = threading.Event()
        try:
            self._pool.submit(self._load, name, slot.generation)
        except Overloaded:
            slot.status = ModelStatus.NOT_LOADED
            slot.settled.set()
            raise

        limit = self.config.timeouts.load_seconds
        slot.deadline = threading.Timer(
            limit,
            self._fail,
            args=(name, slot.generation, f"Loading model '{name}' timed out after {limit}s"),
        )
        slot.deadline.daemon = True
        slot.deadline.start()
        logger.info("Loading model %s", name)

    def _load(self, name: str, generation: int) -> None:
        """Run on the loader pool; retries with exponential backoff."""
        models = self.config.models
        max_attempts = models.max_load_retries
        last_error: Exception | None = None
        attempts = 0

        for attempt in range(1, max_attempts + 1):
            with self._lock:
                slot = self._slots.get(name)
                if slot is None or slot.generation != generation or slot.status != ModelStatus.LOADING:
                    return
                slot.attempts = attempt
            attempts = attempt

            try:
                handle = self._load_once(name)
            except BackendUnavailableError as e:
                last_error = e
                break
            except Exception as e:
                last_error = e
                logger.warning(
                    "Attempt %d/%d to load model %s failed: %s", attempt, max_attempts, name, e
                )
                if attempt < max_attempts:
                    time.sleep(models.retry_backoff_seconds * 2 ** (attempt - 1))
                continue

            if not self._commit(name, generation, handle):
                logger.info("Discarding stale load of model %s", name)
                handle.close()
            return

        self._fail(name, generation, f"Failed to load model '{name}' after {attempts} attempt(s): {last_error}")

    def _load_once(self, name: str) -> LoadedModel:
        models = self.config.models
        path = models.model_path(name)

        if not self.loader.is_present(path):
            if self.downloader is None:
                raise ModelLoadError(f"Model '{name}' not found at {path}", model_name=name)
            logger.info("Model %s not found locally, downloading", name)
            path = self.downloader.download(name, path)

        if name == models.language_model and models.quantize and self.quantizer is not None:
            path = self.quantizer.quantize(name, path, models.quantization_level)

        return self.loader.load(name, path)

    def _commit(self, name: str, generation: int, handle: LoadedModel) -> bool:
        with self._lock:
            slot = self._slots.get(name)
            if slot is None or slot.generation != generation or slot.status != ModelStatus.LOADING:
                return False
            slot.status = ModelStatus.LOADED
            slot.handle = handle
            slot.loaded_at = datetime.now()
            _settle(slot)
        logger.info("Model %s loaded", name)
        return True

    def _fail(self, name: str, generation: int, message: str) -> None:
        with self._lock:
            slot = self._slots.get(name)
            if slot is None or slot.generation != generation or slot.status != ModelStatus.LOADING:
                return
            slot.status = ModelStatus.ERROR
            slot.error = message
            _settle(slot)
        logger.error("Model %s failed to load: %s", name, message)

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def generate_text(self, prompt: str, max_tokens: int, model_name: str | None = None) -> str:
        """Generate text with the language model, loading it on demand.

        Raises:
            ModelNotReadyError: If the model cannot be loaded in time or is
                in ``ERROR``.
            InferenceError: If the loaded model fails while generating.
        """
        name = model_name or self.config.models.language_model
        handle = self._ready_handle(name)
        logger.info("Generating text with %s, prompt length: %d", name, len(prompt))
        try:
            return handle.generate(prompt, max_tokens)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Model '{name}' failed to generate text: {e}") from e

    def embed(self, text: str, model_name: str | None = None) -> list[float]:
        """Embed text with the embedding model, loading it on demand."""
        name = model_name or self.config.models.embedding_model
        handle = self._ready_handle(name)
        try:
            return handle.embed(text)
        except InferenceError:
            raise
        except Exception as e:
            raise InferenceError(f"Model '{name}' failed to embed text: {e}") from e

    def _ready_handle(self, name: str) -> LoadedModel:
        try:
            self.ensure_loaded(name)
        except (ModelLoadError, Overloaded) as e:
            raise ModelNotReadyError(f"Model '{name}' is not ready: {e}", model_name=name) from e

        with self._lock:
            slot = self._slots.get(name)
            if slot is None or slot.status != ModelStatus.LOADED or slot.handle is None:
                status = slot.status.value if slot else ModelStatus.NOT_LOADED.value
                raise ModelNotReadyError(f"Model '{name}' is not ready ({status})", model_name=name)
            return slot.handle

    # -------------------------------------------------------------------------
    # Local artifacts
    # -------------------------------------------------------------------------

    def local_model(self, name: str) -> LocalModel:
        """Describe what a model has on disk, including a quantized copy."""
        models = self.config.models
        path = models.model_path(name)
        quantized = None
        if name == models.language_model and models.quantize:
            candidate = quantized_path(path, models.quantization_level)
            if candidate != path and has_model_artifacts(candidate):
                quantized = candidate
        return LocalModel(
            name=name,
            path=path,
            present=self.loader.is_present(path),
            quantized_path=quantized,
        )

    def remove_local(self, name: str) -> list[Path]:
        """Unload a model and delete its directory and quantized copies.

        Returns:
            The directories that were deleted.

        Raises:
            InferenceError: If a directory cannot be deleted.
        """
        self.unload(name)
        path = self.config.models.model_path(name)
        candidates = [path] + [
            quantized_path(path, level) for level in QuantizationLevel if level != QuantizationLevel.FP32
        ]

        removed = []
        for candidate in candidates:
            if not candidate.is_dir():
                continue
            try:
                shutil.rmtree(candidate)
            except OSError as e:
                raise InferenceError(f"Cannot remove {candidate}: {e}") from e
            removed.append(candidate)

        logger.info("Removed %d director(ies) of model %s", len(removed), name)
        return removed

    # -------------------------------------------------------------------------
    # Unloading
    # -------------------------------------------------------------------------

    def unload(self, name: str) -> None:
        """Release a model; no effect when it is not loaded."""
        with self._lock:
            slot = self._slots.get(name)
            if slot is None or slot.status == ModelStatus.NOT_LOADED:
                return
            handle = slot.handle
            # Invalidates any in-flight attempt
            slot.generation += 1
            slot.status = ModelStatus.NOT_LOADED
            slot.handle = None
            slot.error = None
            slot.loaded_at = None
            _settle(slot)

        logger.info("Unloading model %s", name)
        if handle is not None:
            handle.close()

    def shutdown(self) -> None:
        """Unload every model and stop the loader pool if the manager owns it."""
        with self._lock:
            names = list(self._slots)
        logger.info("Shutting down model manager, unloading %d model(s)", len(names))

        for name in names:
            try:
                self.unload(name)
            except Exception:
                logger.exception("Error unloading model %s", name)

        if self._owns_pool:
            self._pool.shutdown(wait=False, cancel_pending=True)


def _settle(slot: _ModelSlot) -> None:
    """Wake the callers waiting on the current load and disarm its deadline."""
    if slot.deadline is not None:
        slot.deadline.cancel()
        slot.deadline = None
    slot.settled.set()
