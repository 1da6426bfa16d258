"""Shared pytest configuration for checkgraph tests."""

from __future__ import annotations

import pytest

from checkgraph.config import OUTPUT_ROOT_ENV


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment overrides out of configuration loading."""
    monkeypatch.delenv(OUTPUT_ROOT_ENV, raising=False)
    monkeypatch.delenv("CHECKGRAPH_LOG_LEVEL", raising=False)
