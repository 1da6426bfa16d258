"""Unified environment variable resolution utilities."""

from __future__ import annotations

import os

# -----------------------------------------------------------------------------
# String Helpers
# -----------------------------------------------------------------------------


def env_value(name: str) -> str | None:
    """Return stripped env var value, or None if empty/not set.

    Parameters
    ----------
    name
        Environment variable name.

    Returns
    -------
    str | None
        Stripped value or None.
    """
    raw = os.environ.get(name)
    if raw is None:
        return None
    stripped = raw.strip()
    return stripped if stripped else None


__all__ = ["env_value"]
