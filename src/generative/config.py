"""Configuration model and loader for the generative client."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_MODEL = "llama2"
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
HOST_ENV_VAR = "OLLAMA_HOST"
DEFAULT_PORT = 11434


def _default_host() -> str:
    return normalise_host(os.environ.get(HOST_ENV_VAR) or "") or DEFAULT_HOST


def normalise_host(value: str) -> str:
    """Expand the short host forms Ollama accepts, such as ``127.0.0.1:11434``.

    A host without a scheme gets ``http://``, and the default port when it
    names none. Hosts that carry a scheme are only stripped of trailing
    slashes.
    """
    host = value.strip()
    if not host or "://" in host:
        return host.rstrip("/")

    authority, slash, path = host.partition("/")
    if authority.startswith("["):
        has_port = "]:" in authority
    else:
        has_port = ":" in authority
    if not has_port:
        authority = f"{authority}:{DEFAULT_PORT}"
    return f"http://{authority}{slash}{path}".rstrip("/")


class ClientConfig(BaseModel):
    """Settings for a single :class:`~generative.client.GenerativeClient`."""

    host: str = Field(default_factory=_default_host)
    max_retries: int = Field(default=3, ge=0)
    # Milliseconds; the delay before retry n is base_retry_delay * 2**n
    base_retry_delay: float = Field(default=1000.0, ge=0.0)
    default_model: str = Field(default=DEFAULT_MODEL, min_length=1)
    timeout: float = Field(default=120.0, gt=0.0)
    default_system_prompt: str = Field(default=DEFAULT_SYSTEM_PROMPT)

    @field_validator("host", mode="before")
    @classmethod
    def _normalise_host(cls, value: Any) -> str:
        if value is None:
            return _default_host()
        return normalise_host(str(value))

    def with_overrides(self, **overrides: Any) -> ClientConfig:
        """Return a copy with every non-``None`` override applied and re-validated."""
        update = {key: value for key, value in overrides.items() if value is not None}
        if not update:
            return self
        return ClientConfig.model_validate({**self.model_dump(), **update})


def _load_raw_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise TypeError(f"Expected config to deserialize into a mapping, got {type(data)!r}")
    return {str(key): value for key, value in data.items()}


def load_config(path: Path | str | None = None) -> ClientConfig:
    """Load a client configuration from *path* (defaults only when no path is given)."""
    if path is None:
        return ClientConfig()
    raw_config = _load_raw_config(Path(path).resolve())
    return ClientConfig.model_validate(raw_config)


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_MODEL",
    "DEFAULT_SYSTEM_PROMPT",
    "HOST_ENV_VAR",
    "DEFAULT_PORT",
    "ClientConfig",
    "load_config",
    "normalise_host",
]
