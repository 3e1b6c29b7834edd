"""Inference server backends for the generative client."""

from __future__ import annotations

from .base import InferenceBackend
from .ollama import OllamaClient, OllamaError, OllamaNotFoundError

__all__ = [
    "InferenceBackend",
    "OllamaClient",
    "OllamaError",
    "OllamaNotFoundError",
    "build_backend",
]


def build_backend(host: str, *, timeout: float = 120.0) -> InferenceBackend:
    """Instantiate the default backend for *host*."""
    return OllamaClient(host=host, timeout=timeout)
