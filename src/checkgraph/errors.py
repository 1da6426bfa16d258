"""Checkgraph error types for graph construction and verification."""

from __future__ import annotations


class CheckgraphError(Exception):
    """Base class for checkgraph errors."""


class CheckgraphConfigurationError(CheckgraphError, ValueError):
    """Raised when the build graph or toolchain configuration is invalid.

    Configuration errors abort evaluation before any action is produced.
    """


class CheckgraphActionConflictError(CheckgraphConfigurationError):
    """Raised when two different actions declare the same output artifact."""


class CheckgraphReportError(CheckgraphError, RuntimeError):
    """Raised when a verification report cannot be read."""


__all__ = [
    "CheckgraphActionConflictError",
    "CheckgraphConfigurationError",
    "CheckgraphError",
    "CheckgraphReportError",
]
