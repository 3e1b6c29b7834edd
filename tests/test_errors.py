from __future__ import annotations

import pytest

from generative.errors import (
    GenerativeError,
    GenerativeErrorCode,
    classify_generation_failure,
    is_missing_model,
    is_retryable,
)


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("rate limit exceeded", True),
        ("network unreachable", True),
        ("request timeout", True),
        ("Rate Limit exceeded", False),
        ("model not found", False),
        ("boom", False),
    ],
)
def test_is_retryable_matches_case_sensitive_substrings(message: str, expected: bool) -> None:
    assert is_retryable(RuntimeError(message)) is expected


def test_is_missing_model_recognises_both_phrasings() -> None:
    assert is_missing_model("model not found: llama9")
    assert is_missing_model(RuntimeError("pull failed: no such model"))
    assert not is_missing_model("model busy")


def _classify(message: str, *, streaming: bool = False) -> GenerativeError:
    return classify_generation_failure(
        RuntimeError(message), model="llama2", prompt="hi", streaming=streaming, attempts=4
    )


def test_classification_priority_order() -> None:
    assert _classify("rate limit and timeout").code is GenerativeErrorCode.RATE_LIMIT_EXCEEDED
    assert _classify("model not found after timeout").code is GenerativeErrorCode.INVALID_MODEL
    assert _classify("network down", streaming=True).code is GenerativeErrorCode.NETWORK_ERROR
    assert _classify("broken pipe", streaming=True).code is GenerativeErrorCode.STREAM_ERROR
    assert _classify("broken pipe").code is GenerativeErrorCode.GENERATION_FAILED


def test_classification_context_and_cause() -> None:
    cause = RuntimeError("request timeout")
    error = classify_generation_failure(
        cause, model="llama2", prompt="hi", streaming=False, attempts=4
    )

    assert error.cause is cause
    assert dict(error.context) == {"attempt": 4}

    invalid = _classify("model not found")
    assert dict(invalid.context) == {"model": "llama2"}

    generic = _classify("unexpected")
    assert dict(generic.context) == {"prompt": "hi", "model": "llama2"}


def test_existing_generative_error_is_not_rewrapped() -> None:
    original = GenerativeError("bad", GenerativeErrorCode.VALIDATION_FAILED)
    assert (
        classify_generation_failure(
            original, model="m", prompt="p", streaming=False, attempts=1
        )
        is original
    )


def test_error_is_immutable_and_serialisable() -> None:
    cause = ValueError("underlying")
    error = GenerativeError(
        "Failed", GenerativeErrorCode.GENERATION_FAILED, cause=cause, context={"model": "m"}
    )

    with pytest.raises(TypeError):
        error.context["model"] = "other"  # type: ignore[index]
    with pytest.raises(AttributeError):
        error.code = GenerativeErrorCode.STREAM_ERROR  # type: ignore[misc]

    assert error.to_dict() == {
        "name": "GenerativeError",
        "message": "Failed",
        "code": "GENERATION_FAILED",
        "context": {"model": "m"},
        "cause": "underlying",
    }
    assert str(error) == "Failed"
