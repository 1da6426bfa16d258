"""Canonical OpenTelemetry instrumentation scopes for checkgraph."""

from __future__ import annotations

from enum import StrEnum


class ScopeName(StrEnum):
    """Canonical instrumentation scope names."""

    ROOT = "checkgraph"
    WALKER = "checkgraph.walker"
    ACTIONS = "checkgraph.actions"
    VERIFY = "checkgraph.verify"
    CLI = "checkgraph.cli"


SCOPE_ROOT = ScopeName.ROOT
SCOPE_WALKER = ScopeName.WALKER
SCOPE_ACTIONS = ScopeName.ACTIONS
SCOPE_VERIFY = ScopeName.VERIFY
SCOPE_CLI = ScopeName.CLI

__all__ = [
    "SCOPE_ACTIONS",
    "SCOPE_CLI",
    "SCOPE_ROOT",
    "SCOPE_VERIFY",
    "SCOPE_WALKER",
    "ScopeName",
]
