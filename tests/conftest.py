from __future__ import annotations

import sys
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import Any

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


class RecordingLogger:
    """Logger double that keeps every call for later assertions."""

    def __init__(self) -> None:
        self.records: list[dict[str, Any]] = []

    def _record(self, level: str, message: str, context: Any, error: Any = None) -> None:
        self.records.append(
            {"level": level, "message": message, "context": dict(context or {}), "error": error}
        )

    def debug(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._record("debug", message, context)

    def info(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._record("info", message, context)

    def warn(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._record("warn", message, context)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        self._record("error", message, context, error)

    def at(self, level: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record["level"] == level]


class FakeBackend:
    """In-memory stand-in for the inference server.

    ``generate_outcomes`` and ``stream_outcomes`` are consumed one per call;
    exceptions in them are raised instead of returned. ``failures`` maps an
    operation name to the exception it should raise.
    """

    def __init__(self, models: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        seed = models if models is not None else {"llama2": {"modelfile": "FROM llama2"}}
        self.models: dict[str, dict[str, Any]] = {name: dict(raw) for name, raw in seed.items()}
        self.generate_outcomes: list[Any] = []
        self.stream_outcomes: list[list[Any]] = []
        self.failures: dict[str, Exception] = {}
        self.calls: list[tuple[Any, ...]] = []

    def _maybe_fail(self, operation: str) -> None:
        failure = self.failures.get(operation)
        if failure is not None:
            raise failure

    def operations(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def generate(self, **kwargs: Any) -> Mapping[str, Any]:
        self.calls.append(("generate", kwargs))
        outcome = self.generate_outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def stream_generate(self, **kwargs: Any) -> AsyncIterator[Mapping[str, Any]]:
        self.calls.append(("stream_generate", kwargs))
        for item in self.stream_outcomes.pop(0):
            if isinstance(item, Exception):
                raise item
            yield item

    async def list_models(self) -> list[Mapping[str, Any]]:
        self.calls.append(("list",))
        self._maybe_fail("list")
        return [{"name": name} for name in self.models]

    async def show(self, model: str) -> Mapping[str, Any]:
        self.calls.append(("show", model))
        self._maybe_fail("show")
        if model not in self.models:
            raise RuntimeError(f"model not found: {model}")
        return self.models[model]

    async def pull(self, model: str) -> Mapping[str, Any]:
        self.calls.append(("pull", model))
        self._maybe_fail("pull")
        self.models.setdefault(model, {})
        return {"status": "success"}

    async def release(self, model: str) -> None:
        self.calls.append(("release", model))
        self._maybe_fail("release")

    async def update(self, model: str, parameters: Mapping[str, Any]) -> Mapping[str, Any]:
        self.calls.append(("update", model, dict(parameters)))
        self._maybe_fail("update")
        return {"status": "success"}


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace the retry sleep with one that records the requested delays."""
    recorded: list[float] = []

    async def fake_sleep(delay_ms: float) -> None:
        recorded.append(delay_ms)

    monkeypatch.setattr("generative.retry._sleep", fake_sleep)
    return recorded
