"""Normalize OpenTelemetry attributes for checkgraph telemetry."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from opentelemetry.util.types import AttributeValue

from serde_msgspec import dumps_json_sorted
from utils.env_utils import env_value


def _limit_to_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


_MAX_ATTRIBUTES = _limit_to_int(env_value("OTEL_ATTRIBUTE_COUNT_LIMIT"))
_MAX_ATTRIBUTE_LENGTH = _limit_to_int(env_value("OTEL_ATTRIBUTE_VALUE_LENGTH_LIMIT"))


def _truncate_str(value: str) -> str:
    if _MAX_ATTRIBUTE_LENGTH is None:
        return value
    if _MAX_ATTRIBUTE_LENGTH <= 0:
        return ""
    return value[:_MAX_ATTRIBUTE_LENGTH]


def _normalize_value(value: object) -> AttributeValue:
    if isinstance(value, str):
        return _truncate_str(value)
    if isinstance(value, (bool, int, float)):
        return value
    if isinstance(value, Mapping):
        return _truncate_str(dumps_json_sorted(dict(value)).decode("utf-8"))
    if isinstance(value, Sequence):
        return [_truncate_str(str(item)) for item in value if item is not None]
    return _truncate_str(str(value))


def normalize_attributes(attrs: Mapping[str, object] | None) -> dict[str, AttributeValue]:
    """Normalize attributes for spans.

    ``None`` values are dropped; strings are truncated and the attribute
    count is capped according to the standard OTEL limit variables.

    Returns
    -------
    dict[str, AttributeValue]
        Normalized attribute mapping with OpenTelemetry-safe values.
    """
    if not attrs:
        return {}
    normalized: dict[str, AttributeValue] = {
        str(key): _normalize_value(value) for key, value in attrs.items() if value is not None
    }
    if _MAX_ATTRIBUTES is None or len(normalized) <= _MAX_ATTRIBUTES:
        return normalized
    return {key: normalized[key] for key in sorted(normalized)[: max(_MAX_ATTRIBUTES, 0)]}


__all__ = ["normalize_attributes"]
