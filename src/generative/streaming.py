"""Consumption of streamed generation events."""

from __future__ import annotations

import time
from collections.abc import AsyncIterable, Mapping
from typing import Any

from .logger import Logger
from .types import GenerateResult, StreamHandler, invoke_callback


async def consume_stream(
    events: AsyncIterable[Mapping[str, Any]],
    handler: StreamHandler,
    *,
    logger: Logger,
    model: str,
    started_at: float,
) -> GenerateResult:
    """Drain *events*, driving *handler* and accumulating the full text.

    Each event's ``response`` increment is passed to ``on_token`` (awaited
    before the next event is read) and appended to the accumulator. The
    remaining fields are merged into a running snapshot in which later events
    overwrite earlier ones field by field, so the final counters are whatever
    the last event reported.

    When the sequence raises, ``on_error`` sees the exception before it is
    re-raised. Tokens already delivered are not rolled back.
    """
    chunks: list[str] = []
    latest: dict[str, Any] = {}
    try:
        async for event in events:
            token = str(event.get("response") or "")
            await invoke_callback(handler, "on_token", token)
            chunks.append(token)
            latest.update(event)

        result = GenerateResult.from_payload(latest, response="".join(chunks))
        duration_ms = (time.monotonic() - started_at) * 1000
        logger.info(
            "Stream completed",
            {
                "model": model,
                "duration": round(duration_ms, 3),
                "prompt_tokens": result.prompt_token_count,
                "total_tokens": result.total_token_count,
            },
        )
        await invoke_callback(handler, "on_complete", result)
        return result
    except Exception as exc:
        await invoke_callback(handler, "on_error", exc)
        raise


__all__ = ["consume_stream"]
