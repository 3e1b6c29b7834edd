"""Async Ollama HTTP client implementing :class:`InferenceBackend`."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

from ..config import DEFAULT_HOST, normalise_host


class OllamaError(RuntimeError):
    """Raised when the Ollama service fails or returns an unexpected response."""


class OllamaNotFoundError(OllamaError):
    """Raised when the Ollama service reports that a model does not exist."""


@dataclass
class OllamaClient:
    """Thin async wrapper around the Ollama HTTP API."""

    host: str = DEFAULT_HOST
    timeout: float = 120.0
    headers: dict[str, str] = field(default_factory=dict)
    transport: httpx.AsyncBaseTransport | None = None

    def __post_init__(self) -> None:
        self.host = normalise_host(self.host)
        if not self.host or any(char.isspace() for char in self.host):
            raise ValueError(f"Invalid Ollama host: {self.host!r}")
        url = httpx.URL(self.host)
        if url.scheme not in {"http", "https"} or not url.host:
            raise ValueError(f"Invalid Ollama host: {self.host!r}")

    @property
    def base_url(self) -> str:
        """Return the base URL where the Ollama daemon listens."""
        return self.host.rstrip("/")

    async def generate(
        self,
        *,
        model: str,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        system: str | None = None,
        context: Sequence[int] | None = None,
    ) -> dict[str, Any]:
        """Call ``/api/generate`` and return the complete response."""
        payload = self._generate_payload(model, prompt, options, system, context, stream=False)
        return await self._request("POST", "/api/generate", payload)

    async def stream_generate(
        self,
        *,
        model: str,
        prompt: str,
        options: Mapping[str, Any] | None = None,
        system: str | None = None,
        context: Sequence[int] | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Call ``/api/generate`` in streaming mode, yielding one event per line."""
        payload = self._generate_payload(model, prompt, options, system, context, stream=True)
        url = f"{self.base_url}/api/generate"
        try:
            async with self._client() as client:
                async with client.stream("POST", url, json=payload) as response:
                    if response.is_error:
                        await response.aread()
                        raise self._status_error(response, url)
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        event = self._decode_line(line)
                        if "error" in event:
                            raise OllamaError(str(event["error"]))
                        yield event
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, url) from exc

    async def list_models(self) -> list[dict[str, Any]]:
        """Return the tags known to the local Ollama daemon."""
        data = await self._request("GET", "/api/tags")
        models = data.get("models") or []
        if not isinstance(models, list):
            raise OllamaError(f"Unexpected model listing from Ollama: {type(models)!r}")
        return [dict(entry) for entry in models if isinstance(entry, Mapping)]

    async def show(self, model: str) -> dict[str, Any]:
        return await self._request("POST", "/api/show", {"model": model})

    async def pull(self, model: str) -> dict[str, Any]:
        return await self._request("POST", "/api/pull", {"model": model, "stream": False})

    async def release(self, model: str) -> None:
        """Evict *model* from memory; an empty generate with ``keep_alive=0`` unloads it."""
        payload = {"model": model, "keep_alive": 0, "stream": False}
        await self._request("POST", "/api/generate", payload, expect_json=False)

    async def update(self, model: str, parameters: Mapping[str, Any]) -> dict[str, Any]:
        """Re-create *model* from itself with the given parameters."""
        payload = {"model": model, "from": model, "parameters": dict(parameters), "stream": False}
        return await self._request("POST", "/api/create", payload)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, transport=self.transport
        )

    @staticmethod
    def _generate_payload(
        model: str,
        prompt: str,
        options: Mapping[str, Any] | None,
        system: str | None,
        context: Sequence[int] | None,
        *,
        stream: bool,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {"model": model, "prompt": prompt, "stream": stream}
        if options:
            payload["options"] = dict(options)
        if system:
            payload["system"] = system
        if context:
            payload["context"] = list(context)
        return payload

    async def _request(
        self,
        method: str,
        path: str,
        payload: Mapping[str, Any] | None = None,
        *,
        expect_json: bool = True,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with self._client() as client:
                response = await client.request(
                    method, url, json=dict(payload) if payload is not None else None
                )
        except httpx.HTTPError as exc:
            raise self._transport_error(exc, url) from exc

        if response.is_error:
            raise self._status_error(response, url)
        if not expect_json:
            return {}

        try:
            data = response.json()
        except ValueError as exc:
            raise OllamaError("Ollama returned non-JSON response") from exc

        if isinstance(data, dict):
            return data
        raise OllamaError(f"Unexpected payload type from Ollama: {type(data)!r}")

    @staticmethod
    def _decode_line(line: str) -> dict[str, Any]:
        try:
            event = json.loads(line)
        except json.JSONDecodeError as exc:
            raise OllamaError(f"Ollama streamed a malformed event: {line[:120]!r}") from exc
        if not isinstance(event, dict):
            raise OllamaError(f"Unexpected stream event type from Ollama: {type(event)!r}")
        return event

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text.strip() or response.reason_phrase
        if isinstance(data, dict) and "error" in data:
            return str(data["error"])
        return response.text.strip()

    @classmethod
    def _status_error(cls, response: httpx.Response, url: str) -> OllamaError:
        detail = cls._error_detail(response)
        if response.status_code == 404:
            return OllamaNotFoundError(f"model not found: {detail}")
        if response.status_code == 429:
            return OllamaError(f"rate limit exceeded: {detail}")
        return OllamaError(
            f"Ollama request to {url} failed with HTTP {response.status_code}: {detail}"
        )

    @staticmethod
    def _transport_error(exc: httpx.HTTPError, url: str) -> OllamaError:
        if isinstance(exc, httpx.TimeoutException):
            return OllamaError(f"request timeout calling {url}: {exc}")
        return OllamaError(f"network error calling {url}: {exc}")
