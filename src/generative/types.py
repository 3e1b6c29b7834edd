"""Request, result and model-management types for the generative client."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Protocol, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import DEFAULT_MODEL
from .errors import GenerativeError, GenerativeErrorCode

MAX_PROMPT_LENGTH = 1000
_NANOS_PER_MILLI = 1_000_000


class GenerateRequest(BaseModel):
    """A single generation call, fully defaulted and bounds-checked."""

    prompt: str = Field(min_length=1, max_length=MAX_PROMPT_LENGTH)
    model: str = Field(default=DEFAULT_MODEL, min_length=1)
    # Token ids returned by a previous turn
    context: list[int] = Field(default_factory=list)
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    top_p: float = Field(default=0.9, ge=0.0, le=1.0)
    system: str | None = None
    stream: bool = False


class GenerateResult(BaseModel):
    """Text produced by a generation call together with its terminal metrics."""

    response: str = ""
    done: bool = False
    context: list[int] = Field(default_factory=list)
    prompt_token_count: int = 0
    total_token_count: int = 0
    total_duration_ms: float = 0.0
    load_duration_ms: float = 0.0
    eval_duration_ms: float = 0.0

    @classmethod
    def from_payload(
        cls, payload: Mapping[str, Any], response: str | None = None
    ) -> GenerateResult:
        """Build a result from the server's raw field names (durations in nanoseconds)."""

        def _duration(key: str) -> float:
            return (payload.get(key) or 0) / _NANOS_PER_MILLI

        return cls(
            response=response if response is not None else str(payload.get("response") or ""),
            done=bool(payload.get("done", False)),
            context=list(payload.get("context") or []),
            prompt_token_count=int(payload.get("prompt_eval_count") or 0),
            total_token_count=int(payload.get("eval_count") or 0),
            total_duration_ms=_duration("total_duration"),
            load_duration_ms=_duration("load_duration"),
            eval_duration_ms=_duration("eval_duration"),
        )


class StreamHandler(Protocol):
    """Callbacks invoked while a streamed generation is consumed.

    Every callback is optional; a handler may define any subset. Callbacks may
    be plain functions or coroutine functions.
    """

    def on_token(self, token: str) -> None | Awaitable[None]: ...

    def on_complete(self, result: GenerateResult) -> None | Awaitable[None]: ...

    def on_error(self, error: BaseException) -> None | Awaitable[None]: ...


async def invoke_callback(handler: object | None, name: str, *args: Any) -> None:
    """Call ``handler.<name>(*args)`` when present, awaiting awaitable results."""
    if handler is None:
        return
    callback = getattr(handler, name, None)
    if callback is None:
        return
    outcome = callback(*args)
    if inspect.isawaitable(outcome):
        await outcome


class Quantization(str, Enum):
    NONE = "none"
    Q4 = "4bit"
    Q5 = "5bit"
    Q8 = "8bit"

    def __str__(self) -> str:
        return self.value


class ModelParameters(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    context_length: int | None = Field(default=None, ge=512, le=32768)
    gpu_layers: int | None = Field(default=None, ge=0)
    quantization: Quantization | None = None
    threads: int | None = Field(default=None, ge=1)
    batch_size: int | None = Field(default=None, ge=1)
    # Passed to the server verbatim
    model_params: dict[str, Any] | None = None


class ResourceLimits(BaseModel):
    max_memory: int | None = Field(default=None, ge=0)
    max_gpu_memory: int | None = Field(default=None, ge=0)
    cpu_cores: int | None = Field(default=None, ge=1)


class PerformanceFlags(BaseModel):
    use_gpu: bool | None = None
    use_metal: bool | None = None
    use_tensor_cores: bool | None = None


class ModelConfigOptions(BaseModel):
    """Structured model configuration; each group is independently optional."""

    parameters: ModelParameters | None = None
    resources: ResourceLimits | None = None
    performance: PerformanceFlags | None = None

    def merged_over(self, previous: ModelConfigOptions | None) -> ModelConfigOptions:
        """Return this config with absent groups taken from *previous*."""
        if previous is None:
            return self
        return ModelConfigOptions(
            parameters=self.parameters if self.parameters is not None else previous.parameters,
            resources=self.resources if self.resources is not None else previous.resources,
            performance=(
                self.performance if self.performance is not None else previous.performance
            ),
        )


class ParameterRange(BaseModel):
    min: float
    max: float
    default: float


class ModelCapabilities(BaseModel):
    max_context_length: int = 4096
    streaming: bool = True
    system_prompts: bool = True
    temperature_range: ParameterRange = Field(
        default_factory=lambda: ParameterRange(min=0.0, max=2.0, default=0.7)
    )
    top_p_range: ParameterRange = Field(
        default_factory=lambda: ParameterRange(min=0.0, max=1.0, default=0.9)
    )


class ModelDescriptor(BaseModel):
    """Capabilities and configuration known for one model id."""

    id: str
    name: str
    provider: str = "ollama"
    capabilities: ModelCapabilities = Field(default_factory=ModelCapabilities)
    custom_config: ModelConfigOptions | None = None
    metadata: dict[str, Any] | None = None

    @classmethod
    def with_defaults(
        cls, model_id: str, metadata: Mapping[str, Any] | None = None
    ) -> ModelDescriptor:
        return cls(
            id=model_id,
            name=model_id,
            metadata=dict(metadata) if metadata is not None else None,
        )


ModelState = Literal["ready", "loading", "error"]


class ModelStatus(BaseModel):
    """Last known runtime state of a model on the server."""

    loaded: bool = False
    status: ModelState = "loading"
    memory_usage: int | None = None
    error: str | None = None
    last_used: datetime | None = None


GenerateInput = Union[GenerateRequest, Mapping[str, Any]]
ModelConfigInput = Union[ModelConfigOptions, Mapping[str, Any], None]


def validate_generate_request(
    options: Any, *, default_model: str | None = None
) -> GenerateRequest:
    """Return a defaulted :class:`GenerateRequest` or raise ``VALIDATION_FAILED``.

    When *default_model* is given it replaces the built-in default for
    requests that omit ``model``.
    """
    if isinstance(options, GenerateRequest):
        return options
    try:
        if isinstance(options, Mapping) and default_model and "model" not in options:
            options = {**options, "model": default_model}
        return GenerateRequest.model_validate(options)
    except ValidationError as exc:
        raise GenerativeError(
            "Validation failed",
            GenerativeErrorCode.VALIDATION_FAILED,
            cause=exc,
            context={"input": options},
        ) from exc


def validate_model_config(config: Any) -> ModelConfigOptions | None:
    """Validate a model configuration; ``None`` means "no configuration"."""
    if config is None or isinstance(config, ModelConfigOptions):
        return config
    try:
        return ModelConfigOptions.model_validate(config)
    except ValidationError as exc:
        raise GenerativeError(
            "Invalid model configuration",
            GenerativeErrorCode.VALIDATION_FAILED,
            cause=exc,
            context={"input": config},
        ) from exc


__all__ = [
    "MAX_PROMPT_LENGTH",
    "GenerateRequest",
    "GenerateResult",
    "StreamHandler",
    "invoke_callback",
    "Quantization",
    "ModelParameters",
    "ResourceLimits",
    "PerformanceFlags",
    "ModelConfigOptions",
    "ParameterRange",
    "ModelCapabilities",
    "ModelDescriptor",
    "ModelState",
    "ModelStatus",
    "GenerateInput",
    "ModelConfigInput",
    "validate_generate_request",
    "validate_model_config",
]
