"""Tracing helpers for checkgraph instrumentation."""

from __future__ import annotations

import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from importlib.metadata import PackageNotFoundError, version

from opentelemetry import trace
from opentelemetry.trace import Span, Status, StatusCode

from obs.otel.attributes import normalize_attributes


def _instrumentation_version() -> str:
    try:
        return version("checkgraph")
    except PackageNotFoundError:
        return "unknown"


def get_tracer(scope_name: str) -> trace.Tracer:
    """Return a tracer for the given instrumentation scope.

    Parameters
    ----------
    scope_name
        Instrumentation scope name.

    Returns
    -------
    opentelemetry.trace.Tracer
        Tracer bound to the requested scope.
    """
    return trace.get_tracer(scope_name, instrumenting_library_version=_instrumentation_version())


def set_span_attributes(span: Span, attrs: Mapping[str, object] | None) -> None:
    """Attach normalized attributes to a span.

    Parameters
    ----------
    span
        Span to update.
    attrs
        Raw attributes to normalize and attach.
    """
    for key, value in normalize_attributes(attrs).items():
        span.set_attribute(key, value)


def record_exception(span: Span, exc: Exception) -> None:
    """Record an exception on a span and mark it as error.

    Parameters
    ----------
    span
        Span to annotate.
    exc
        Exception to record.
    """
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR))


@contextmanager
def stage_span(
    name: str,
    *,
    stage: str,
    scope_name: str,
    attributes: Mapping[str, object] | None = None,
) -> Iterator[Span]:
    """Start a stage span that records its status and duration.

    Parameters
    ----------
    name
        Span name.
    stage
        Stage name recorded as an attribute.
    scope_name
        Instrumentation scope name.
    attributes
        Optional span attributes.

    Yields
    ------
    Span
        The started span.
    """
    base_attrs: dict[str, object] = {"checkgraph.stage": stage}
    if attributes:
        base_attrs.update(attributes)
    tracer = get_tracer(scope_name)
    start = time.monotonic()
    status = "ok"
    with tracer.start_as_current_span(name, attributes=normalize_attributes(base_attrs)) as span:
        try:
            yield span
        except Exception as exc:
            status = "error"
            record_exception(span, exc)
            raise
        finally:
            set_span_attributes(
                span,
                {"duration_s": time.monotonic() - start, "status": status},
            )


__all__ = ["get_tracer", "record_exception", "set_span_attributes", "stage_span"]
