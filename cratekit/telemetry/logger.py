"""Structured operation logging utilities.

Responsibilities:
- Emit concise, deterministic operation-level log lines through `loguru`.
- Keep retry chatter suppressible per call via the `silent` flag.
"""

from __future__ import annotations

import itertools
import sys
from typing import TextIO
import weakref

from loguru import logger as _loguru_logger

_LOGGER_TOKENS = itertools.count(1)


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character
        if character.isalnum() or character in {"-", "_", ".", ":", "/", "\\"}
        else "_"
        for character in raw
    )


def _format_context(context: dict[str, object]) -> str:
    """Serialize context key/value pairs in deterministic key order."""

    if not context:
        return ""
    tokens = [
        f"{key}={_sanitize_context_value(context[key])}"
        for key in sorted(context.keys())
    ]
    return " " + " ".join(tokens)


def _remove_handler(handler_id: int) -> None:
    try:
        _loguru_logger.remove(handler_id)
    except ValueError:
        # Cleared earlier by `configure_cli_logging`.
        return


def configure_cli_logging() -> None:
    """Drop loguru's preinstalled stderr handler so CLI output is not duplicated."""

    _loguru_logger.remove()


class OperationLogger:
    """Emit deterministic operation logs for file-system and command activity.

    Each instance owns exactly one loguru handler, filtered to its own records,
    so constructing a logger never disturbs handlers configured elsewhere. The
    handler is removed by `close()` or when the logger is garbage collected.
    """

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        """Initialize logger sink and configure deterministic formatting."""

        self._sink = sink or sys.stderr
        token = next(_LOGGER_TOKENS)
        self._logger = _loguru_logger.bind(operation_logger=token)
        handler_id = _loguru_logger.add(
            self._sink,
            format="{message}",
            level=level,
            colorize=False,
            filter=lambda record: record["extra"].get("operation_logger") == token,
        )
        self._finalizer = weakref.finalize(self, _remove_handler, handler_id)

    def close(self) -> None:
        """Detach this logger's loguru handler."""

        self._finalizer()

    def _emit(self, level: str, scope: str, operation: str, event: str, **context: object) -> None:
        """Emit one structured log line."""

        line = f"[{scope}] level={level} op={operation} event={event}{_format_context(context)}"
        self._logger.log(level, line)

    def log_retry(
        self,
        operation: str,
        attempt: int,
        attempts: int,
        error: BaseException,
        *,
        silent: bool = False,
    ) -> None:
        """Emit a retry warning unless the caller asked for silence."""

        if silent:
            return
        self._emit(
            "WARNING",
            "fs",
            operation,
            "retry",
            attempt=f"{attempt}/{attempts}",
            error_type=type(error).__name__,
        )

    def log_fallback(self, operation: str, path: object, *, silent: bool = False) -> None:
        """Emit a fallback notice for slower per-file directory operations."""

        if silent:
            return
        self._emit("WARNING", "fs", operation, "fallback", path=path)

    def log_failure(self, operation: str, error: BaseException, **context: object) -> None:
        """Emit a failure event without sensitive payload details."""

        self._emit("ERROR", "fs", operation, "failure", error_type=type(error).__name__, **context)

    def log_command(self, command: str, event: str, **context: object) -> None:
        """Emit a command-layer event."""

        self._emit("INFO", "command", command, event, **context)

    def warn(self, message: str) -> None:
        """Emit a free-form warning message verbatim."""

        self._logger.warning(message)
