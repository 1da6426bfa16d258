"""OpenTelemetry helpers for checkgraph observability."""

from __future__ import annotations

from obs.otel.logging import LOG_LEVELS, TRACE_LOG_FORMAT, TraceContextFilter, configure_logging
from obs.otel.scopes import (
    SCOPE_ACTIONS,
    SCOPE_CLI,
    SCOPE_ROOT,
    SCOPE_VERIFY,
    SCOPE_WALKER,
    ScopeName,
)
from obs.otel.tracing import get_tracer, record_exception, set_span_attributes, stage_span

__all__ = [
    "LOG_LEVELS",
    "SCOPE_ACTIONS",
    "SCOPE_CLI",
    "SCOPE_ROOT",
    "SCOPE_VERIFY",
    "SCOPE_WALKER",
    "TRACE_LOG_FORMAT",
    "ScopeName",
    "TraceContextFilter",
    "configure_logging",
    "get_tracer",
    "record_exception",
    "set_span_attributes",
    "stage_span",
]
