from __future__ import annotations

import pytest

from generative.errors import GenerativeError, GenerativeErrorCode
from generative.types import (
    GenerateRequest,
    GenerateResult,
    ModelConfigOptions,
    ModelParameters,
    Quantization,
    validate_generate_request,
    validate_model_config,
)


def test_generate_request_defaults_are_applied() -> None:
    request = validate_generate_request({"prompt": "Hello"})

    assert request.model == "llama2"
    assert request.context == []
    assert request.temperature == 0.7
    assert request.top_p == 0.9
    assert request.system is None
    assert request.stream is False


def test_injected_default_model_only_fills_missing_model() -> None:
    assert validate_generate_request({"prompt": "x"}, default_model="mistral").model == "mistral"
    explicit = validate_generate_request({"prompt": "x", "model": "phi3"}, default_model="mistral")
    assert explicit.model == "phi3"


@pytest.mark.parametrize("length", [1, 500, 1000])
@pytest.mark.parametrize("temperature", [0.0, 1.3, 2.0])
@pytest.mark.parametrize("top_p", [0.0, 0.5, 1.0])
def test_bounds_inside_range_are_accepted(length: int, temperature: float, top_p: float) -> None:
    request = validate_generate_request(
        {"prompt": "a" * length, "temperature": temperature, "top_p": top_p}
    )
    assert len(request.prompt) == length
    assert request.temperature == temperature
    assert request.top_p == top_p


@pytest.mark.parametrize(
    "options",
    [
        {"prompt": ""},
        {"prompt": "a" * 1001},
        {"prompt": "ok", "model": ""},
        {"prompt": "ok", "temperature": -0.1},
        {"prompt": "ok", "temperature": 2.01},
        {"prompt": "ok", "top_p": 1.5},
        {"prompt": "ok", "context": ["not", "tokens"]},
        {},
        None,
    ],
)
def test_invalid_requests_fail_closed(options: object) -> None:
    with pytest.raises(GenerativeError) as excinfo:
        validate_generate_request(options)

    assert excinfo.value.code is GenerativeErrorCode.VALIDATION_FAILED
    assert excinfo.value.context["input"] == options
    assert excinfo.value.cause is not None


def test_validated_request_instance_is_passed_through() -> None:
    request = GenerateRequest(prompt="hi", model="phi3")
    assert validate_generate_request(request, default_model="llama2") is request


def test_model_config_groups_are_independent() -> None:
    config = validate_model_config({"performance": {"use_gpu": True}})

    assert config is not None
    assert config.parameters is None
    assert config.resources is None
    assert config.performance is not None
    assert config.performance.use_gpu is True


def test_model_config_none_means_no_configuration() -> None:
    assert validate_model_config(None) is None


@pytest.mark.parametrize(
    "config",
    [
        {"parameters": {"context_length": 256}},
        {"parameters": {"context_length": 65536}},
        {"parameters": {"gpu_layers": -1}},
        {"parameters": {"quantization": "3bit"}},
        {"parameters": {"threads": 0}},
        {"parameters": {"batch_size": 0}},
        {"resources": {"max_memory": -1}},
        {"resources": {"cpu_cores": 0}},
    ],
)
def test_model_config_out_of_bounds_is_rejected(config: dict[str, object]) -> None:
    with pytest.raises(GenerativeError) as excinfo:
        validate_model_config(config)
    assert excinfo.value.code is GenerativeErrorCode.VALIDATION_FAILED


def test_merged_over_keeps_absent_groups() -> None:
    previous = ModelConfigOptions.model_validate(
        {"parameters": {"threads": 4}, "resources": {"cpu_cores": 2}}
    )
    update = ModelConfigOptions(parameters=ModelParameters(quantization=Quantization.Q8))

    merged = update.merged_over(previous)

    assert merged.parameters == ModelParameters(quantization=Quantization.Q8)
    assert merged.resources == previous.resources
    assert merged.performance is None


def test_generate_result_from_payload_converts_durations() -> None:
    result = GenerateResult.from_payload(
        {
            "response": "Hello",
            "done": True,
            "context": [1, 2, 3],
            "prompt_eval_count": 10,
            "eval_count": 20,
            "total_duration": 5_000_000,
            "load_duration": 1_000_000,
            "eval_duration": 2_500_000,
        }
    )

    assert result.response == "Hello"
    assert result.done is True
    assert result.context == [1, 2, 3]
    assert result.prompt_token_count == 10
    assert result.total_token_count == 20
    assert result.total_duration_ms == 5.0
    assert result.load_duration_ms == 1.0
    assert result.eval_duration_ms == 2.5


def test_generate_result_missing_metrics_default_to_zero() -> None:
    result = GenerateResult.from_payload({}, response="partial")
    assert result.response == "partial"
    assert result.done is False
    assert result.total_token_count == 0
