"""Incremental type-check and native compilation planning over build graphs."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from checkgraph.actions import (
        Action,
        ActionExecutor,
        ActionGraph,
        build_action_graph,
        submit_action_graph,
    )
    from checkgraph.artifacts import Artifact, Label, SourceFile
    from checkgraph.config import CheckgraphConfig, load_config
    from checkgraph.errors import (
        CheckgraphActionConflictError,
        CheckgraphConfigurationError,
        CheckgraphError,
        CheckgraphReportError,
    )
    from checkgraph.nodes import BuildGraph, build_graph_from_nodes, load_manifest
    from checkgraph.planning import BuildPlan, plan_build, plan_manifest
    from checkgraph.reports import VerificationResult, verify_reports
    from checkgraph.state import EMPTY_STATE, NodeState
    from checkgraph.verification import check_test_targets
    from checkgraph.walker import GraphWalker

_EXPORT_MAP: dict[str, tuple[str, str]] = {
    "EMPTY_STATE": ("checkgraph.state", "EMPTY_STATE"),
    "Action": ("checkgraph.actions", "Action"),
    "ActionExecutor": ("checkgraph.actions", "ActionExecutor"),
    "ActionGraph": ("checkgraph.actions", "ActionGraph"),
    "Artifact": ("checkgraph.artifacts", "Artifact"),
    "BuildGraph": ("checkgraph.nodes", "BuildGraph"),
    "BuildPlan": ("checkgraph.planning", "BuildPlan"),
    "CheckgraphActionConflictError": ("checkgraph.errors", "CheckgraphActionConflictError"),
    "CheckgraphConfig": ("checkgraph.config", "CheckgraphConfig"),
    "CheckgraphConfigurationError": ("checkgraph.errors", "CheckgraphConfigurationError"),
    "CheckgraphError": ("checkgraph.errors", "CheckgraphError"),
    "CheckgraphReportError": ("checkgraph.errors", "CheckgraphReportError"),
    "GraphWalker": ("checkgraph.walker", "GraphWalker"),
    "Label": ("checkgraph.artifacts", "Label"),
    "NodeState": ("checkgraph.state", "NodeState"),
    "SourceFile": ("checkgraph.artifacts", "SourceFile"),
    "VerificationResult": ("checkgraph.reports", "VerificationResult"),
    "build_action_graph": ("checkgraph.actions", "build_action_graph"),
    "build_graph_from_nodes": ("checkgraph.nodes", "build_graph_from_nodes"),
    "check_test_targets": ("checkgraph.verification", "check_test_targets"),
    "load_config": ("checkgraph.config", "load_config"),
    "load_manifest": ("checkgraph.nodes", "load_manifest"),
    "plan_build": ("checkgraph.planning", "plan_build"),
    "plan_manifest": ("checkgraph.planning", "plan_manifest"),
    "submit_action_graph": ("checkgraph.actions", "submit_action_graph"),
    "verify_reports": ("checkgraph.reports", "verify_reports"),
}


def __getattr__(name: str) -> object:
    target = _EXPORT_MAP.get(name)
    if target is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)
    module_path, attr_name = target
    module = importlib.import_module(module_path)
    return getattr(module, attr_name)


def __dir__() -> list[str]:
    return sorted(list(globals()) + list(_EXPORT_MAP))


__all__ = [
    "EMPTY_STATE",
    "Action",
    "ActionExecutor",
    "ActionGraph",
    "Artifact",
    "BuildGraph",
    "BuildPlan",
    "CheckgraphActionConflictError",
    "CheckgraphConfig",
    "CheckgraphConfigurationError",
    "CheckgraphError",
    "CheckgraphReportError",
    "GraphWalker",
    "Label",
    "NodeState",
    "SourceFile",
    "VerificationResult",
    "build_action_graph",
    "build_graph_from_nodes",
    "check_test_targets",
    "load_config",
    "load_manifest",
    "plan_build",
    "plan_manifest",
    "submit_action_graph",
    "verify_reports",
]
