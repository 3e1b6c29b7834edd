"""Client mediating application code and a local inference server."""

from __future__ import annotations

import time
from typing import Any

from .backends import InferenceBackend, build_backend
from .config import ClientConfig
from .errors import GenerativeError, GenerativeErrorCode, classify_generation_failure
from .logger import Logger, StdlibLogger
from .registry import ModelRegistry
from .retry import RetryExhaustedError, RetryPolicy, run_with_retry
from .streaming import consume_stream
from .types import (
    GenerateInput,
    GenerateRequest,
    GenerateResult,
    ModelConfigInput,
    ModelDescriptor,
    ModelStatus,
    StreamHandler,
    validate_generate_request,
)


def _elapsed_ms(started_at: float) -> float:
    return round((time.monotonic() - started_at) * 1000, 3)


class GenerativeClient:
    """Generation with retries and streaming, plus model lifecycle management.

    Every public coroutine raises :class:`GenerativeError` on failure. The
    model caches belong to this instance and are not shared with other
    clients.
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        host: str | None = None,
        max_retries: int | None = None,
        base_retry_delay: float | None = None,
        default_model: str | None = None,
        logger: Logger | None = None,
        backend: InferenceBackend | None = None,
    ) -> None:
        self._logger: Logger = logger or StdlibLogger()
        try:
            self._config = (config or ClientConfig()).with_overrides(
                host=host,
                max_retries=max_retries,
                base_retry_delay=base_retry_delay,
                default_model=default_model,
            )
            self._backend: InferenceBackend = (
                backend
                if backend is not None
                else build_backend(self._config.host, timeout=self._config.timeout)
            )
        except Exception as exc:
            error = GenerativeError(
                "Failed to initialize Ollama client",
                GenerativeErrorCode.INITIALIZATION_FAILED,
                cause=exc,
                context={"host": host or (config.host if config else None)},
            )
            self._logger.error("Failed to initialize client", error)
            raise error from exc

        self._retry_policy = RetryPolicy(
            max_retries=self._config.max_retries,
            base_delay_ms=self._config.base_retry_delay,
        )
        self._registry = ModelRegistry(self._backend, self._logger)
        self._logger.info("GenerativeClient initialized", {"host": self._config.host})

    @property
    def config(self) -> ClientConfig:
        return self._config

    @property
    def retry_policy(self) -> RetryPolicy:
        return self._retry_policy

    # -- generation -------------------------------------------------------

    async def generate(
        self, request: GenerateInput, handler: StreamHandler | None = None
    ) -> str:
        """Generate text for *request* and return it.

        With ``stream=True`` and a *handler*, tokens are delivered to the
        handler as they arrive; without a handler the call behaves as a
        single-shot request.
        """
        result = await self.generate_result(request, handler)
        return result.response

    async def generate_result(
        self, request: GenerateInput, handler: StreamHandler | None = None
    ) -> GenerateResult:
        """Like :meth:`generate` but return the text with its metrics and context."""
        started_at = time.monotonic()
        try:
            validated = validate_generate_request(
                request, default_model=self._config.default_model
            )
        except GenerativeError as error:
            self._logger.error("Validation failed", error, {"duration": _elapsed_ms(started_at)})
            raise

        streaming = validated.stream and handler is not None
        self._logger.debug(
            "Starting generation",
            {
                "model": validated.model,
                "temperature": validated.temperature,
                "top_p": validated.top_p,
                "stream": validated.stream,
            },
        )
        await self._reject_errored_model(validated.model, started_at)
        verified = False

        async def attempt() -> GenerateResult:
            nonlocal verified
            if not verified:
                await self._ensure_model_known(validated.model)
                verified = True
            return await self._attempt(validated, handler if streaming else None, started_at)

        try:
            return await run_with_retry(
                attempt,
                policy=self._retry_policy,
                logger=self._logger,
                model=validated.model,
            )
        except RetryExhaustedError as exhausted:
            error = classify_generation_failure(
                exhausted.last_error,
                model=validated.model,
                prompt=validated.prompt,
                streaming=streaming,
                attempts=exhausted.attempts,
            )
            self._logger.error("Generation failed", error, {"duration": _elapsed_ms(started_at)})
            raise error from error.cause

    async def _reject_errored_model(self, model: str, started_at: float) -> None:
        status = await self._registry.cached_status(model)
        if status.status == "error":
            error = GenerativeError(
                "Model is in an error state",
                GenerativeErrorCode.INVALID_MODEL,
                context={"model": model, "error": status.error},
            )
            self._logger.error("Generation failed", error, {"duration": _elapsed_ms(started_at)})
            raise error

    async def _ensure_model_known(self, model: str) -> None:
        # Transport failures propagate so the retry loop sees them
        if await self._registry.lookup(model) is None:
            raise GenerativeError(
                "Invalid model specified",
                GenerativeErrorCode.INVALID_MODEL,
                context={"model": model},
            )

    async def _attempt(
        self,
        request: GenerateRequest,
        handler: StreamHandler | None,
        started_at: float,
    ) -> GenerateResult:
        call: dict[str, Any] = {
            "model": request.model,
            "prompt": request.prompt,
            "options": {"temperature": request.temperature, "top_p": request.top_p},
            "system": request.system or self._config.default_system_prompt,
            "context": list(request.context),
        }
        if handler is not None:
            return await consume_stream(
                self._backend.stream_generate(**call),
                handler,
                logger=self._logger,
                model=request.model,
                started_at=started_at,
            )

        payload = await self._backend.generate(**call)
        result = GenerateResult.from_payload(payload)
        self._logger.info(
            "Generation successful",
            {
                "model": request.model,
                "duration": _elapsed_ms(started_at),
                "prompt_tokens": result.prompt_token_count,
                "total_tokens": result.total_token_count,
            },
        )
        return result

    # -- model management -------------------------------------------------

    async def list_models(self) -> list[ModelDescriptor]:
        return await self._registry.list_models()

    async def get_model(self, model_id: str) -> ModelDescriptor | None:
        return await self._registry.get_model(model_id)

    async def get_model_status(self, model_id: str) -> ModelStatus:
        return await self._registry.get_model_status(model_id)

    async def preload_model(self, model_id: str, config: ModelConfigInput = None) -> None:
        await self._registry.preload_model(model_id, config)

    async def update_model_config(self, model_id: str, config: ModelConfigInput) -> None:
        await self._registry.update_model_config(model_id, config)

    async def unload_model(self, model_id: str) -> None:
        await self._registry.unload_model(model_id)


__all__ = ["GenerativeClient"]
