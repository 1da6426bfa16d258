"""Run context for CLI command injection."""

from __future__ import annotations

from dataclasses import dataclass

from checkgraph.config import CheckgraphConfig


@dataclass(frozen=True)
class RunContext:
    """Injected run context for CLI commands.

    Parameters
    ----------
    log_level
        Logging level applied to the invocation.
    config
        Effective checkgraph configuration.
    """

    log_level: str
    config: CheckgraphConfig


__all__ = ["RunContext"]
