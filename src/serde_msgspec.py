"""Shared msgspec policy and helpers."""

from __future__ import annotations

import re
from collections.abc import Callable
from pathlib import Path
from typing import Any, Literal

import msgspec


class StructBaseStrict(
    msgspec.Struct,
    frozen=True,
    kw_only=True,
    omit_defaults=True,
    repr_omit_defaults=True,
    forbid_unknown_fields=True,
):
    """Base struct for strict contracts."""


class StructBaseHotPath(
    msgspec.Struct,
    frozen=True,
    kw_only=True,
    omit_defaults=True,
    repr_omit_defaults=True,
    forbid_unknown_fields=False,
    gc=False,
    cache_hash=True,
):
    """Base struct for high-volume, immutable artifacts."""


_DEFAULT_ORDER: Literal["deterministic"] = "deterministic"

_VALIDATION_RE = re.compile(r"^(?P<summary>.*?)(?:\s+-\s+at\s+`(?P<path>[^`]+)`)?$")


def _json_enc_hook(obj: object) -> object:
    if isinstance(obj, Path):
        return str(obj)
    if isinstance(obj, type):
        return f"{obj.__module__}.{obj.__qualname__}"
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).hex()
    raise TypeError


def _dec_hook(type_hint: Any, obj: object) -> object:
    if not isinstance(obj, str):
        return obj
    converters: dict[object, Callable[[str], object]] = {
        Path: Path,
    }
    handler = converters.get(type_hint)
    if handler is None:
        return obj
    return handler(obj)


JSON_ENCODER_SORTED = msgspec.json.Encoder(
    enc_hook=_json_enc_hook,
    order="sorted",
)


def validation_error_payload(exc: msgspec.ValidationError) -> dict[str, str]:
    """Normalize a msgspec ValidationError for diagnostics.

    Parameters
    ----------
    exc
        ValidationError raised by msgspec decoding/conversion.

    Returns
    -------
    dict[str, str]
        Normalized error payload containing type, summary, and optional path.
    """
    message = str(exc).strip()
    match = _VALIDATION_RE.match(message)
    payload: dict[str, str] = {"type": exc.__class__.__name__}
    if match:
        summary = (match.group("summary") or "").strip()
        if summary:
            payload["summary"] = summary
        path = match.group("path")
        if path:
            payload["path"] = path
        return payload
    payload["summary"] = message
    return payload


def dumps_json_sorted(obj: object, *, pretty: bool = False) -> bytes:
    """Serialize an object to JSON bytes with sorted keys.

    Parameters
    ----------
    obj
        Object to serialize.
    pretty
        Whether to format with indentation.

    Returns
    -------
    bytes
        JSON payload with sorted keys.
    """
    raw = JSON_ENCODER_SORTED.encode(obj)
    if not pretty:
        return raw
    return msgspec.json.format(raw, indent=2)


def convert[T](
    obj: object,
    *,
    target_type: type[T],
    strict: bool = True,
) -> T:
    """Convert an object into a target type.

    Parameters
    ----------
    obj
        Object to convert.
    target_type
        Target type for conversion.
    strict
        Whether to enforce strict conversion.

    Returns
    -------
    T
        Converted payload.
    """
    return msgspec.convert(
        obj,
        type=target_type,
        strict=strict,
        dec_hook=_dec_hook,
    )


def to_builtins(obj: object, *, str_keys: bool = True) -> object:
    """Convert an object into builtin JSON-friendly types.

    Parameters
    ----------
    obj
        Object to convert.
    str_keys
        Whether to coerce mapping keys to strings.

    Returns
    -------
    object
        Builtin-friendly representation.
    """
    return msgspec.to_builtins(
        obj,
        order=_DEFAULT_ORDER,
        str_keys=str_keys,
        enc_hook=_json_enc_hook,
    )
