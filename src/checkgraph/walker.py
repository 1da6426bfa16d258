"""Memoized dependency walk that folds node state and declares actions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from checkgraph.actions import Action, ActionGraph, build_action_graph
from checkgraph.analyzer import analyze_node
from checkgraph.artifacts import Artifact, Label, canonical_label
from checkgraph.cc_context import CompilationContext, merge_compilation_contexts
from checkgraph.config import CheckgraphConfig
from checkgraph.invoker import declare_report, declare_type_check, mypy_arguments
from checkgraph.native import NativeBuild, NativeToolchain, plan_native_build
from checkgraph.nodes import BuildGraph, NodeInputs, is_supported, node_inputs
from checkgraph.outputs import declare_node_outputs
from checkgraph.state import EMPTY_STATE, NodeState, merge_cache_maps, union_transitive
from checkgraph.toolchain import is_legacy_version, validate_python_version
from obs.otel import SCOPE_WALKER, stage_span

logger = logging.getLogger(__name__)

type NodeKey = tuple[str, str]


@dataclass(frozen=True)
class NodeAnalysis:
    """State and declared actions of one node at one version."""

    label: str
    python_version: str
    state: NodeState
    actions: tuple[Action, ...] = ()


def _native_context(
    native: NativeBuild | None,
    dep_states: Sequence[NodeState],
) -> CompilationContext | None:
    if native is not None:
        return native.context
    contexts = [state.native_context for state in dep_states if state.native_context]
    if not contexts:
        return None
    return merge_compilation_contexts(contexts)


class GraphWalker:
    """Evaluate nodes of a build graph, each at most once per version.

    Parameters
    ----------
    graph
        Validated target graph.
    config
        Effective configuration.
    """

    def __init__(self, graph: BuildGraph, config: CheckgraphConfig) -> None:
        self._graph = graph
        self._config = config
        self._memo: dict[NodeKey, NodeAnalysis] = {}
        self._toolchain: NativeToolchain | None = None

    @property
    def config(self) -> CheckgraphConfig:
        """Return the configuration the walker was built with."""
        return self._config

    @property
    def graph(self) -> BuildGraph:
        """Return the walked target graph."""
        return self._graph

    def state_for(self, label: str, python_version: str) -> NodeState:
        """Return the merged state of a node at a version.

        Returns
        -------
        NodeState
            Transitive state; empty for unsupported node kinds.
        """
        return self.analysis_for(label, python_version).state

    def analysis_for(self, label: str, python_version: str) -> NodeAnalysis:
        """Return the memoized analysis of a node, walking dependencies first.

        The walk uses an explicit stack so graph depth is not bounded by the
        interpreter recursion limit.

        Returns
        -------
        NodeAnalysis
            State and actions for the node's effective version.
        """
        root = self._key(label, validate_python_version(python_version))
        stack: list[tuple[NodeKey, bool]] = [(root, False)]
        while stack:
            key, expanded = stack.pop()
            if key in self._memo:
                continue
            dep_keys = self._dependency_keys(key)
            if expanded:
                self._memo[key] = self._analyze(key, dep_keys)
                continue
            stack.append((key, True))
            stack.extend(
                (dep_key, False) for dep_key in reversed(dep_keys) if dep_key not in self._memo
            )
        return self._memo[root]

    def evaluate(self, labels: Iterable[str], python_version: str) -> tuple[NodeState, ...]:
        """Return states for several nodes at one version.

        Returns
        -------
        tuple[NodeState, ...]
            States in the order of ``labels``.
        """
        requested = tuple(labels)
        with stage_span(
            "checkgraph.walk",
            stage="walk",
            scope_name=SCOPE_WALKER,
            attributes={
                "checkgraph.python_version": python_version,
                "checkgraph.target_count": len(requested),
            },
        ) as span:
            states = tuple(self.state_for(label, python_version) for label in requested)
            span.set_attribute("checkgraph.analyzed_nodes", len(self._memo))
            return states

    def analyses(self) -> tuple[NodeAnalysis, ...]:
        """Return every analysis computed so far, in evaluation order."""
        return tuple(self._memo.values())

    def declared_actions(self) -> tuple[Action, ...]:
        """Return every action declared so far, in evaluation order."""
        return tuple(action for analysis in self._memo.values() for action in analysis.actions)

    def action_graph(self, extra_actions: Iterable[Action] = ()) -> ActionGraph:
        """Return the action graph over declared and extra actions.

        Returns
        -------
        ActionGraph
            Graph linking producers to consumers.
        """
        return build_action_graph((*self.declared_actions(), *extra_actions))

    def _key(self, label: str, python_version: str) -> NodeKey:
        canonical = canonical_label(label)
        inputs = self._inputs(canonical)
        if inputs is not None and inputs.pinned_version is not None:
            return canonical, validate_python_version(inputs.pinned_version)
        return canonical, python_version

    def _inputs(self, label: str) -> NodeInputs | None:
        node = self._graph.node(label)
        if is_supported(node):
            return node_inputs(node)
        return None

    def _dependency_keys(self, key: NodeKey) -> list[NodeKey]:
        label, python_version = key
        inputs = self._inputs(label)
        if inputs is None:
            return []
        deps = list(inputs.deps)
        typeshed = self._config.typeshed_label(python_version)
        if inputs.invoking and typeshed is not None and typeshed != label:
            deps.append(canonical_label(typeshed))
        return [self._key(dep, python_version) for dep in deps]

    def _native_toolchain(self) -> NativeToolchain:
        if self._toolchain is None:
            self._toolchain = NativeToolchain.from_config(self._config)
        return self._toolchain

    def _analyze(self, key: NodeKey, dep_keys: Sequence[NodeKey]) -> NodeAnalysis:
        label, python_version = key
        inputs = self._inputs(label)
        if inputs is None:
            logger.debug("Skipping unsupported node %s.", label)
            return NodeAnalysis(label=label, python_version=python_version, state=EMPTY_STATE)
        dep_states = [self._memo[dep_key].state for dep_key in dep_keys]
        analyzed = analyze_node(inputs, dep_states)
        if analyzed.is_empty:
            logger.debug("Node %s has no reachable sources at %s.", label, python_version)
            return NodeAnalysis(label=label, python_version=python_version, state=EMPTY_STATE)

        output_root = self._config.output_root
        compiled = inputs.compiled and not is_legacy_version(python_version)
        target = Label.parse(label)
        source_outputs = declare_node_outputs(
            analyzed.own_sources,
            python_version=python_version,
            compiled=compiled,
            output_root=output_root,
        )
        outputs: list[Artifact] = [
            artifact for entry in source_outputs for artifact in entry.all_outputs()
        ]
        native: NativeBuild | None = None
        if compiled:
            native = plan_native_build(
                target,
                analyzed.own_sources,
                toolchain=self._native_toolchain(),
                dep_contexts=[state.native_context for state in dep_states],
            )
            outputs = [*native.generated.all(), *outputs]
        report = declare_report(target, python_version, output_root=output_root)
        cache_map = merge_cache_maps(
            [entry.cache_entry() for entry in source_outputs],
            [state.cache_map for state in dep_states],
        )
        groups = union_transitive(
            [native.group] if native is not None else [],
            (state.compiled_groups for state in dep_states),
        )
        arguments = mypy_arguments(
            python_version=python_version,
            package_roots=analyzed.package_roots,
            report=report,
            cache_map=cache_map,
            sources=analyzed.sources,
            groups=groups if compiled else None,
        )
        type_check = declare_type_check(
            target,
            config=self._config,
            arguments=arguments,
            sources=analyzed.sources,
            reused_outputs=union_transitive((), (state.generated_outputs for state in dep_states)),
            outputs=(*outputs, report),
        )
        state = NodeState(
            sources=analyzed.sources,
            package_roots=analyzed.package_roots,
            generated_outputs=union_transitive(
                outputs, (state.generated_outputs for state in dep_states)
            ),
            cache_map=cache_map,
            reports=union_transitive([report], (state.reports for state in dep_states)),
            compiled_groups=groups,
            extension_modules=union_transitive(
                native.extension_modules if native is not None else (),
                (state.extension_modules for state in dep_states),
            ),
            native_context=_native_context(native, dep_states),
        )
        actions: tuple[Action, ...] = (type_check,)
        if native is not None:
            actions = (*actions, *native.actions)
        logger.debug(
            "Analyzed %s at %s: %d sources, %d actions.",
            label,
            python_version,
            len(state.sources),
            len(actions),
        )
        return NodeAnalysis(
            label=label,
            python_version=python_version,
            state=state,
            actions=actions,
        )


__all__ = ["GraphWalker", "NodeAnalysis", "NodeKey"]
