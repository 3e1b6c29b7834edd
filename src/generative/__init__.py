"""Async client for a local large-language-model inference server."""

from .backends import InferenceBackend, OllamaClient, OllamaError, OllamaNotFoundError
from .client import GenerativeClient
from .config import ClientConfig, load_config
from .errors import GenerativeError, GenerativeErrorCode
from .logger import Logger, StdlibLogger
from .types import (
    GenerateRequest,
    GenerateResult,
    ModelCapabilities,
    ModelConfigOptions,
    ModelDescriptor,
    ModelParameters,
    ModelStatus,
    PerformanceFlags,
    Quantization,
    ResourceLimits,
    StreamHandler,
    validate_generate_request,
    validate_model_config,
)

__all__ = [
    "GenerativeClient",
    "ClientConfig",
    "load_config",
    "GenerativeError",
    "GenerativeErrorCode",
    "Logger",
    "StdlibLogger",
    "InferenceBackend",
    "OllamaClient",
    "OllamaError",
    "OllamaNotFoundError",
    "GenerateRequest",
    "GenerateResult",
    "StreamHandler",
    "ModelCapabilities",
    "ModelConfigOptions",
    "ModelDescriptor",
    "ModelParameters",
    "ModelStatus",
    "PerformanceFlags",
    "Quantization",
    "ResourceLimits",
    "validate_generate_request",
    "validate_model_config",
    "__version__",
]

__version__ = "0.1.0"
