"""Remote capabilities the client consumes from an inference server."""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from typing import Any, Protocol


class InferenceBackend(Protocol):
    """Protocol describing the server operations the client relies on.

    Failures are reported by raising; the exception text is what the client
    classifies, so implementations should mention "rate limit", "network",
    "timeout" or "model not found" where those conditions apply.
    """

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        system: str | None = None,
        context: Sequence[int] | None = None,
    ) -> Mapping[str, Any]:
        """Return the final payload, containing at least a ``response`` field."""

    def stream_generate(
        self,
        *,
        model: str,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        system: str | None = None,
        context: Sequence[int] | None = None,
    ) -> AsyncIterator[Mapping[str, Any]]:
        """Yield partial payloads, each carrying an incremental ``response``."""

    async def list_models(self) -> list[Mapping[str, Any]]:
        """Return one mapping with at least a ``name`` per model on the server."""

    async def show(self, model: str) -> Mapping[str, Any]:
        """Return the raw configuration of *model*; raise when it does not exist."""

    async def pull(self, model: str) -> Mapping[str, Any]: ...

    async def release(self, model: str) -> None:
        """Drop *model* from server memory without removing it from disk."""

    async def update(self, model: str, parameters: Mapping[str, Any]) -> Mapping[str, Any]:
        """Apply flat server parameters to *model*."""
