"""Translation of structured model configuration into server parameters."""

from __future__ import annotations

from typing import Any

from .backends.base import InferenceBackend
from .logger import Logger
from .types import ModelConfigOptions, ModelDescriptor

PARAMETER_FIELDS = {
    "context_length": "context_length",
    "gpu_layers": "gpu_layers",
    "quantization": "quantization",
    "threads": "num_threads",
    "batch_size": "batch_size",
}
RESOURCE_FIELDS = {
    "max_memory": "max_memory",
    "max_gpu_memory": "max_gpu_memory",
    "cpu_cores": "num_cpu",
}
PERFORMANCE_FIELDS = {
    "use_gpu": "use_gpu",
    "use_metal": "use_metal",
    "use_tensor_cores": "use_tensor_cores",
}


def _rename_present(group: Any, table: dict[str, str]) -> dict[str, Any]:
    if group is None:
        return {}
    flat: dict[str, Any] = {}
    for source, target in table.items():
        value = getattr(group, source)
        if value is not None:
            flat[target] = str(value) if source == "quantization" else value
    return flat


def flatten_model_config(config: ModelConfigOptions) -> dict[str, Any]:
    """Return the sparse flat parameter set for *config*.

    Fields that are absent are never emitted, so the server keeps whatever it
    had for them. Extra ``model_params`` are merged verbatim after the
    renamed parameter fields.
    """
    flat = _rename_present(config.parameters, PARAMETER_FIELDS)
    if config.parameters is not None and config.parameters.model_params:
        flat.update(config.parameters.model_params)
    flat.update(_rename_present(config.resources, RESOURCE_FIELDS))
    flat.update(_rename_present(config.performance, PERFORMANCE_FIELDS))
    return flat


class ModelConfigApplier:
    """Sends configuration to the server and records it on the descriptor."""

    def __init__(self, backend: InferenceBackend, logger: Logger) -> None:
        self._backend = backend
        self._logger = logger

    async def apply(
        self, descriptor: ModelDescriptor, config: ModelConfigOptions
    ) -> ModelDescriptor:
        """Push *config* for ``descriptor.id`` and return the updated descriptor.

        The descriptor keeps the structured form, with groups absent from
        *config* carried over from its previous custom configuration.
        """
        parameters = flatten_model_config(config)
        await self._backend.update(descriptor.id, parameters)
        self._logger.info(
            "Model configuration applied",
            {"model": descriptor.id, "parameters": sorted(parameters)},
        )
        return descriptor.model_copy(
            update={"custom_config": config.merged_over(descriptor.custom_config)}
        )


__all__ = [
    "PARAMETER_FIELDS",
    "RESOURCE_FIELDS",
    "PERFORMANCE_FIELDS",
    "flatten_model_config",
    "ModelConfigApplier",
]
