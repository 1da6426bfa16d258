"""End-to-end planning: manifest to target graph to action graph."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import msgspec

from checkgraph.actions import ActionGraph, action_graph_payload
from checkgraph.config import CheckgraphConfig
from checkgraph.errors import CheckgraphConfigurationError
from checkgraph.nodes import (
    AnyNode,
    BuildGraph,
    PyCompiledBinary,
    build_graph_from_nodes,
    decode_manifest,
    read_manifest,
)
from checkgraph.toolchain import SUPPORTED_VERSIONS
from checkgraph.verification import (
    DEFAULT_TEST_SIZE,
    CheckTestPlan,
    CompiledBinaryPlan,
    check_test_targets,
    plan_check_test,
    plan_compiled_binary,
)
from checkgraph.walker import GraphWalker
from serde_msgspec import StructBaseStrict, convert, validation_error_payload

logger = logging.getLogger(__name__)


class CheckTestSpec(StructBaseStrict, frozen=True):
    """Manifest declaration of a check test before version expansion."""

    label: str
    deps: tuple[str, ...]
    size: str = DEFAULT_TEST_SIZE
    tags: tuple[str, ...] = ()
    python2_compatible: bool = True
    python3_compatible: bool = True


def decode_check_tests(payload: object) -> tuple[CheckTestSpec, ...]:
    """Decode the optional ``check_tests`` list of a manifest.

    Returns
    -------
    tuple[CheckTestSpec, ...]
        Declared check tests; empty when the manifest has none.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when an entry does not match the check-test schema.
    """
    if not isinstance(payload, Mapping):
        return ()
    raw = payload.get("check_tests")
    if raw is None:
        return ()
    try:
        return convert(raw, target_type=tuple[CheckTestSpec, ...])
    except msgspec.ValidationError as exc:
        details = validation_error_payload(exc)
        msg = f"Invalid check_tests entry: {details}"
        raise CheckgraphConfigurationError(msg) from exc


@dataclass(frozen=True)
class BuildPlan:
    """Evaluated graph with every declared action."""

    graph: BuildGraph
    walker: GraphWalker
    check_tests: tuple[CheckTestPlan, ...]
    compiled_binaries: tuple[CompiledBinaryPlan, ...]
    action_graph: ActionGraph

    def payload(self) -> Mapping[str, object]:
        """Return a deterministic JSON-ready description of the plan.

        Returns
        -------
        Mapping[str, object]
            Node states, check tests, compiled binaries and actions.
        """
        return {
            "config_fingerprint": self.walker.config.fingerprint(),
            "nodes": [
                {
                    "label": analysis.label,
                    "python_version": analysis.python_version,
                    "state": analysis.state.payload(),
                }
                for analysis in sorted(
                    self.walker.analyses(),
                    key=lambda item: (item.label, item.python_version),
                )
            ],
            "check_tests": [
                {
                    "label": plan.target.label,
                    "python_version": plan.target.python_version,
                    "size": plan.target.size,
                    "tags": list(plan.target.tags),
                    "script": plan.script.path,
                    "runfiles": list(plan.runfiles),
                }
                for plan in self.check_tests
            ],
            "compiled_binaries": [
                {
                    "label": plan.label,
                    "interpreter": plan.interpreter.path,
                    "extension_modules": [artifact.path for artifact in plan.extension_modules],
                }
                for plan in self.compiled_binaries
            ],
            **action_graph_payload(self.action_graph),
        }


def plan_build(
    nodes: Sequence[AnyNode],
    *,
    config: CheckgraphConfig,
    check_tests: Sequence[CheckTestSpec] = (),
    targets: Sequence[str] = (),
    python_versions: Sequence[str] = SUPPORTED_VERSIONS,
) -> BuildPlan:
    """Evaluate a manifest and collect every declared action.

    Compiled binaries are validated first so configuration errors surface
    before any action graph exists. ``targets`` are evaluated at each of
    ``python_versions`` in addition to the check tests.

    Returns
    -------
    BuildPlan
        Evaluated plan.
    """
    graph = build_graph_from_nodes(nodes, implicit_deps=config.typeshed.values())
    walker = GraphWalker(graph, config)
    binaries = tuple(
        plan_compiled_binary(node, walker)
        for node in nodes
        if isinstance(node, PyCompiledBinary)
    )
    tests = tuple(
        plan_check_test(target, walker)
        for spec in check_tests
        for target in check_test_targets(
            spec.label,
            spec.deps,
            size=spec.size,
            tags=spec.tags,
            python2_compatible=spec.python2_compatible,
            python3_compatible=spec.python3_compatible,
        )
    )
    if targets:
        for python_version in python_versions:
            walker.evaluate(targets, python_version)
    action_graph = walker.action_graph(extra_actions=[plan.action for plan in tests])
    logger.info(
        "Planned %d nodes, %d check tests and %d actions.",
        len(walker.analyses()),
        len(tests),
        action_graph.graph.num_nodes(),
    )
    return BuildPlan(
        graph=graph,
        walker=walker,
        check_tests=tests,
        compiled_binaries=binaries,
        action_graph=action_graph,
    )


def plan_manifest(
    path: Path,
    *,
    config: CheckgraphConfig,
    targets: Sequence[str] = (),
    python_versions: Sequence[str] = SUPPORTED_VERSIONS,
) -> BuildPlan:
    """Load a manifest file and plan it.

    Returns
    -------
    BuildPlan
        Evaluated plan.
    """
    payload = read_manifest(path)
    return plan_build(
        decode_manifest(payload),
        config=config,
        check_tests=decode_check_tests(payload),
        targets=targets,
        python_versions=python_versions,
    )


__all__ = [
    "BuildPlan",
    "CheckTestSpec",
    "decode_check_tests",
    "plan_build",
    "plan_manifest",
]
