"""Structured run logging utilities.

Responsibilities:
- Emit single-line `[phase]` events with sorted, shell-safe context tokens.
- Route every event through `loguru`; only an explicit sink reconfigures it.
"""

from __future__ import annotations

from typing import TextIO

from loguru import logger as _loguru_logger


def _sanitize_context_value(value: object) -> str:
    """Convert context values into stable, shell-safe tokens."""

    raw = str(value).strip()
    if not raw:
        return "none"
    return "".join(
        character if character.isalnum() or character in {"-", "_", ".", ":", "/"} else "_"
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


def format_event(level: str, event: str, stage: str, **context: object) -> str:
    """Render one event line without emitting it."""

    return f"[phase] level={level} stage={stage} event={event}{_format_context(context)}"


class RunLogger:
    """Emit deterministic phase logs for jobs, pipeline stages, and providers."""

    def __init__(self, sink: TextIO | None = None, level: str = "INFO") -> None:
        """Optionally replace loguru handlers with a plain-message sink."""

        self._sink = sink
        if sink is not None:
            _loguru_logger.remove()
            _loguru_logger.add(sink, format="{message}", level=level, colorize=False)

    def log_event(self, level: str, event: str, stage: str, **context: object) -> None:
        """Emit one structured runtime log line."""

        _loguru_logger.log(level, format_event(level, event, stage, **context))

    def log_stage_start(self, stage: str, **context: object) -> None:
        """Emit a stage-start runtime event."""

        self.log_event("INFO", "start", stage, **context)

    def log_stage_complete(self, stage: str, **context: object) -> None:
        """Emit a stage-complete runtime event."""

        self.log_event("INFO", "complete", stage, **context)

    def log_stage_failure(self, stage: str, error_type: str, **context: object) -> None:
        """Emit a stage-failure runtime event without sensitive payload details."""

        self.log_event("ERROR", "failure", stage, error_type=error_type, **context)
