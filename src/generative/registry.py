"""In-memory model registry kept consistent with the inference server."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from .backends.base import InferenceBackend
from .config_applier import ModelConfigApplier
from .errors import GenerativeError, GenerativeErrorCode, error_text, is_missing_model
from .logger import Logger
from .types import (
    ModelConfigInput,
    ModelConfigOptions,
    ModelDescriptor,
    ModelStatus,
    validate_model_config,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ModelRegistry:
    """Descriptor and status caches for the models a client has seen.

    Descriptors are created on first observation and never evicted. Status
    entries are a write-through cache of the last known server state.
    Each map has its own lock, held only while the map is touched; lifecycle
    calls against the same model id still have to be serialized by the
    caller.
    """

    def __init__(self, backend: InferenceBackend, logger: Logger) -> None:
        self._backend = backend
        self._logger = logger
        self._applier = ModelConfigApplier(backend, logger)
        self._descriptors: dict[str, ModelDescriptor] = {}
        self._statuses: dict[str, ModelStatus] = {}
        self._descriptors_lock = asyncio.Lock()
        self._statuses_lock = asyncio.Lock()

    # -- cache primitives -------------------------------------------------

    async def _cached_descriptor(self, model_id: str) -> ModelDescriptor | None:
        async with self._descriptors_lock:
            return self._descriptors.get(model_id)

    async def _store_descriptor(self, descriptor: ModelDescriptor) -> None:
        async with self._descriptors_lock:
            self._descriptors[descriptor.id] = descriptor

    async def _register_if_absent(
        self, model_id: str, metadata: Mapping[str, Any] | None = None
    ) -> ModelDescriptor:
        async with self._descriptors_lock:
            existing = self._descriptors.get(model_id)
            if existing is not None:
                return existing
            descriptor = ModelDescriptor.with_defaults(model_id, metadata)
            self._descriptors[model_id] = descriptor
        self._logger.debug("Model registered", {"model": model_id})
        return descriptor

    async def cached_status(self, model_id: str) -> ModelStatus:
        """Return the last recorded status without contacting the server."""
        async with self._statuses_lock:
            status = self._statuses.get(model_id)
        return status.model_copy() if status is not None else ModelStatus()

    async def _store_status(self, model_id: str, status: ModelStatus) -> None:
        async with self._statuses_lock:
            self._statuses[model_id] = status

    def _validated_config(
        self, model_id: str, config: ModelConfigInput
    ) -> ModelConfigOptions | None:
        try:
            return validate_model_config(config)
        except GenerativeError as error:
            self._logger.error("Invalid model configuration", error, {"model": model_id})
            raise

    def _failure(
        self,
        message: str,
        exc: Exception,
        model_id: str | None,
        code: GenerativeErrorCode = GenerativeErrorCode.INITIALIZATION_FAILED,
    ) -> GenerativeError:
        context = {"model": model_id} if model_id is not None else {}
        error = GenerativeError(message, code, cause=exc, context=context)
        self._logger.error(message, error, context)
        return error

    # -- read operations --------------------------------------------------

    async def list_models(self) -> list[ModelDescriptor]:
        """Return a descriptor for every model the server lists.

        Cached descriptors win over synthesized ones, and models missing from
        the listing stay cached.
        """
        try:
            entries = await self._backend.list_models()
        except Exception as exc:
            raise self._failure("Failed to list models", exc, None) from exc

        descriptors: list[ModelDescriptor] = []
        for entry in entries:
            name = entry.get("name") or entry.get("model")
            if not name:
                continue
            descriptors.append(await self._register_if_absent(str(name)))
        return descriptors

    async def lookup(self, model_id: str) -> ModelDescriptor | None:
        """Like :meth:`get_model` but let server failures propagate unwrapped.

        Only a missing model maps to ``None``; transport errors keep their
        text so the caller can retry or classify them.
        """
        cached = await self._cached_descriptor(model_id)
        if cached is not None:
            return cached

        try:
            raw_config = await self._backend.show(model_id)
        except Exception as exc:
            if is_missing_model(exc):
                self._logger.debug("Model not found on server", {"model": model_id})
                return None
            raise

        return await self._register_if_absent(model_id, dict(raw_config))

    async def get_model(self, model_id: str) -> ModelDescriptor | None:
        """Return the descriptor for *model_id*, or ``None`` if the server lacks it."""
        try:
            return await self.lookup(model_id)
        except Exception as exc:
            raise self._failure(
                "Failed to look up model", exc, model_id, GenerativeErrorCode.INVALID_MODEL
            ) from exc

    async def get_model_status(self, model_id: str) -> ModelStatus:
        """Re-verify *model_id* against the server and record the outcome."""
        status = await self.cached_status(model_id)
        try:
            await self._backend.show(model_id)
        except Exception as exc:
            status = status.model_copy(
                update={"loaded": False, "status": "error", "error": error_text(exc)}
            )
        else:
            status = status.model_copy(update={"loaded": True, "status": "ready", "error": None})
        await self._store_status(model_id, status)
        return status

    # -- write operations -------------------------------------------------

    async def apply_config(self, model_id: str, config: ModelConfigOptions) -> ModelDescriptor:
        """Send *config* to the server and record it on the cached descriptor."""
        descriptor = await self._register_if_absent(model_id)
        try:
            updated = await self._applier.apply(descriptor, config)
        except Exception as exc:
            raise self._failure("Failed to apply model configuration", exc, model_id) from exc
        await self._store_descriptor(updated)
        return updated

    async def preload_model(self, model_id: str, config: ModelConfigInput = None) -> None:
        """Load *model_id* on the server, applying *config* first when given.

        An already loaded model is not pulled again; a new config goes
        through :meth:`update_model_config` instead.
        """
        validated = self._validated_config(model_id, config)
        current = await self.cached_status(model_id)
        if current.loaded:
            if validated is not None:
                await self.update_model_config(model_id, validated)
            return

        if validated is not None:
            await self.apply_config(model_id, validated)

        await self._store_status(model_id, current.model_copy(update={"status": "loading"}))
        try:
            await self._backend.pull(model_id)
        except Exception as exc:
            await self._store_status(
                model_id,
                ModelStatus(loaded=False, status="error", error=error_text(exc)),
            )
            raise self._failure("Failed to preload model", exc, model_id) from exc

        await self._register_if_absent(model_id)
        await self._store_status(
            model_id, ModelStatus(loaded=True, status="ready", last_used=_now())
        )
        self._logger.info("Model preloaded", {"model": model_id})

    async def unload_model(self, model_id: str) -> None:
        """Release *model_id* on the server; a no-op when it is not loaded."""
        current = await self.cached_status(model_id)
        if not current.loaded:
            return

        try:
            await self._backend.release(model_id)
        except Exception as exc:
            raise self._failure("Failed to unload model", exc, model_id) from exc

        await self._store_status(
            model_id, ModelStatus(loaded=False, status="ready", last_used=_now())
        )
        self._logger.info("Model unloaded", {"model": model_id})

    async def update_model_config(self, model_id: str, config: ModelConfigInput) -> None:
        """Apply *config* to a known model, reloading it when it is loaded.

        A loaded model is never reconfigured in place: it goes through an
        unload/preload cycle with the new configuration.
        """
        validated = self._validated_config(model_id, config)
        if await self.get_model(model_id) is None:
            error = GenerativeError(
                f"Model {model_id} not found",
                GenerativeErrorCode.INVALID_MODEL,
                context={"model": model_id},
            )
            self._logger.error("Cannot update unknown model", error, {"model": model_id})
            raise error
        if validated is None:
            return

        await self.apply_config(model_id, validated)
        status = await self.cached_status(model_id)
        if status.loaded:
            await self.unload_model(model_id)
            await self.preload_model(model_id, validated)


__all__ = ["ModelRegistry"]
