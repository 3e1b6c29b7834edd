"""Logger capability injected into the client."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Protocol

LOGGER_NAME = "generative"


class Logger(Protocol):
    """Structured logging sink expected by the client."""

    def debug(self, message: str, context: Mapping[str, Any] | None = None) -> None: ...

    def info(self, message: str, context: Mapping[str, Any] | None = None) -> None: ...

    def warn(self, message: str, context: Mapping[str, Any] | None = None) -> None: ...

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None: ...


def format_context(context: Mapping[str, Any] | None) -> str:
    if not context:
        return ""
    return " ".join(f"{key}={context[key]!r}" for key in sorted(context))


class StdlibLogger:
    """Default :class:`Logger` backed by the standard ``logging`` module."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(LOGGER_NAME)

    def _log(
        self, level: int, message: str, context: Mapping[str, Any] | None, **kwargs: Any
    ) -> None:
        rendered = format_context(context)
        if rendered:
            self._logger.log(level, "%s %s", message, rendered, **kwargs)
        else:
            self._logger.log(level, "%s", message, **kwargs)

    def debug(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.DEBUG, message, context)

    def info(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.INFO, message, context)

    def warn(self, message: str, context: Mapping[str, Any] | None = None) -> None:
        self._log(logging.WARNING, message, context)

    def error(
        self,
        message: str,
        error: BaseException | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        exc_info = (type(error), error, error.__traceback__) if error is not None else None
        self._log(logging.ERROR, message, context, exc_info=exc_info)


__all__ = ["LOGGER_NAME", "Logger", "StdlibLogger", "format_context"]
