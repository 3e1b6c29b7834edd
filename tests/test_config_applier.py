from __future__ import annotations

import asyncio

from generative.config_applier import ModelConfigApplier, flatten_model_config
from generative.types import ModelConfigOptions, ModelDescriptor


def test_flatten_renames_every_field() -> None:
    config = ModelConfigOptions.model_validate(
        {
            "parameters": {
                "context_length": 8192,
                "gpu_layers": 35,
                "quantization": "5bit",
                "threads": 8,
                "batch_size": 512,
                "model_params": {"rope_frequency_base": 10000, "mirostat": 2},
            },
            "resources": {
                "max_memory": 8_000_000_000,
                "max_gpu_memory": 4_000_000_000,
                "cpu_cores": 6,
            },
            "performance": {"use_gpu": True, "use_metal": False, "use_tensor_cores": True},
        }
    )

    assert flatten_model_config(config) == {
        "context_length": 8192,
        "gpu_layers": 35,
        "quantization": "5bit",
        "num_threads": 8,
        "batch_size": 512,
        "rope_frequency_base": 10000,
        "mirostat": 2,
        "max_memory": 8_000_000_000,
        "max_gpu_memory": 4_000_000_000,
        "num_cpu": 6,
        "use_gpu": True,
        "use_metal": False,
        "use_tensor_cores": True,
    }


def test_flatten_is_sparse() -> None:
    config = ModelConfigOptions.model_validate(
        {"parameters": {"threads": 2}, "performance": {"use_metal": False}}
    )

    assert flatten_model_config(config) == {"num_threads": 2, "use_metal": False}
    assert flatten_model_config(ModelConfigOptions()) == {}


def test_apply_sends_flat_form_and_stores_structured_form(backend, logger) -> None:
    applier = ModelConfigApplier(backend, logger)
    descriptor = ModelDescriptor.with_defaults("llama2")
    config = ModelConfigOptions.model_validate({"parameters": {"gpu_layers": 0}})

    updated = asyncio.run(applier.apply(descriptor, config))

    assert backend.calls == [("update", "llama2", {"gpu_layers": 0})]
    assert updated.custom_config == config
    assert descriptor.custom_config is None
    assert logger.at("info")[0]["message"] == "Model configuration applied"
