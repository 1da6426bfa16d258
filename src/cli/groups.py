"""Shared help-panel groups for the checkgraph CLI."""

from __future__ import annotations

from cyclopts import Group

session_group = Group(
    "Session",
    help="Session and configuration options.",
    sort_key=0,
)

output_group = Group(
    "Output",
    help="Configure plan output format and destination.",
    sort_key=1,
)

__all__ = ["output_group", "session_group"]
