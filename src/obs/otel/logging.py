"""Logging setup with trace correlation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

from opentelemetry import trace

if TYPE_CHECKING:

    class _TraceRecord(logging.LogRecord):
        trace_id: str | None
        span_id: str | None


TRACE_LOG_FORMAT = (
    "%(asctime)s %(levelname)s [trace_id=%(trace_id)s span_id=%(span_id)s] %(name)s: %(message)s"
)
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


class TraceContextFilter(logging.Filter):
    """Attach trace/span IDs to log records when available."""

    @staticmethod
    def filter(record: logging.LogRecord) -> bool:
        """Inject trace/span IDs into the log record when available.

        Returns
        -------
        bool
            True to keep the log record.
        """
        context = trace.get_current_span().get_span_context()
        trace_record = cast("_TraceRecord", record)
        if context is None or not context.is_valid:
            trace_record.trace_id = None
            trace_record.span_id = None
            return True
        trace_record.trace_id = f"{context.trace_id:032x}"
        trace_record.span_id = f"{context.span_id:016x}"
        return True


def configure_logging(level: str = "INFO", *, logger: logging.Logger | None = None) -> None:
    """Configure a logger with the trace-correlating format.

    Handlers already carrying a ``TraceContextFilter`` are left untouched.

    Raises
    ------
    ValueError
        Raised for an unsupported log level.
    """
    normalized = level.upper()
    if normalized not in LOG_LEVELS:
        msg = f"Unsupported log level {level!r}."
        raise ValueError(msg)
    target = logger or logging.getLogger()
    target.setLevel(normalized)
    if not target.handlers:
        target.addHandler(logging.StreamHandler())
    for handler in target.handlers:
        if any(isinstance(existing, TraceContextFilter) for existing in handler.filters):
            continue
        handler.addFilter(TraceContextFilter())
        handler.setFormatter(logging.Formatter(TRACE_LOG_FORMAT))


__all__ = ["LOG_LEVELS", "TRACE_LOG_FORMAT", "TraceContextFilter", "configure_logging"]
