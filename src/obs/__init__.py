"""Observability helpers for checkgraph."""
