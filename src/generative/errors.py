"""Error taxonomy shared by every public operation of the client."""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any

RETRYABLE_MARKERS = ("rate limit", "network", "timeout")
MISSING_MODEL_MARKERS = ("model not found", "no such model")


class GenerativeErrorCode(str, Enum):
    INITIALIZATION_FAILED = "INITIALIZATION_FAILED"
    GENERATION_FAILED = "GENERATION_FAILED"
    INVALID_MODEL = "INVALID_MODEL"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NETWORK_ERROR = "NETWORK_ERROR"
    STREAM_ERROR = "STREAM_ERROR"

    def __str__(self) -> str:
        return self.value


class GenerativeError(Exception):
    """The single failure type surfaced by the client.

    The failure kind lives in :attr:`code` rather than in a subclass, so
    callers branch on ``error.code`` instead of catching different types.
    """

    def __init__(
        self,
        message: str,
        code: GenerativeErrorCode,
        *,
        cause: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self._message = message
        self._code = code
        self._cause = cause
        self._context: Mapping[str, Any] = MappingProxyType(dict(context or {}))

    @property
    def message(self) -> str:
        return self._message

    @property
    def code(self) -> GenerativeErrorCode:
        return self._code

    @property
    def cause(self) -> BaseException | None:
        return self._cause

    @property
    def context(self) -> Mapping[str, Any]:
        return self._context

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly rendering of the error."""
        return {
            "name": type(self).__name__,
            "message": self._message,
            "code": self._code.value,
            "context": dict(self._context),
            "cause": str(self._cause) if self._cause is not None else None,
        }

    def __repr__(self) -> str:
        return f"GenerativeError(code={self._code.value!r}, message={self._message!r})"


def error_text(error: BaseException | str) -> str:
    return error if isinstance(error, str) else str(error)


def is_retryable(error: BaseException | str) -> bool:
    """Return True when the failure text signals a transient condition."""
    text = error_text(error)
    return any(marker in text for marker in RETRYABLE_MARKERS)


def is_missing_model(error: BaseException | str) -> bool:
    text = error_text(error)
    return any(marker in text for marker in MISSING_MODEL_MARKERS)


def classify_generation_failure(
    error: BaseException,
    *,
    model: str,
    prompt: str,
    streaming: bool,
    attempts: int,
) -> GenerativeError:
    """Map the terminal failure of a generation call onto the taxonomy.

    Patterns are checked in priority order: rate limit, missing model,
    network/timeout, then the streaming bucket, then the generic bucket.
    """
    if isinstance(error, GenerativeError):
        return error

    text = error_text(error)
    if "rate limit" in text:
        return GenerativeError(
            "Rate limit exceeded",
            GenerativeErrorCode.RATE_LIMIT_EXCEEDED,
            cause=error,
            context={"prompt": prompt, "model": model},
        )
    if is_missing_model(text):
        return GenerativeError(
            "Invalid model specified",
            GenerativeErrorCode.INVALID_MODEL,
            cause=error,
            context={"model": model},
        )
    if "network" in text or "timeout" in text:
        return GenerativeError(
            "Network error occurred",
            GenerativeErrorCode.NETWORK_ERROR,
            cause=error,
            context={"attempt": attempts},
        )
    if streaming:
        return GenerativeError(
            "Streaming error occurred",
            GenerativeErrorCode.STREAM_ERROR,
            cause=error,
            context={"prompt": prompt, "model": model},
        )
    return GenerativeError(
        "Failed to generate content",
        GenerativeErrorCode.GENERATION_FAILED,
        cause=error,
        context={"prompt": prompt, "model": model},
    )


__all__ = [
    "RETRYABLE_MARKERS",
    "MISSING_MODEL_MARKERS",
    "GenerativeErrorCode",
    "GenerativeError",
    "error_text",
    "is_retryable",
    "is_missing_model",
    "classify_generation_failure",
]
