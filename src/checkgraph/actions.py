"""Deferred action descriptions and the rustworkx action graph.

Nothing in this module runs a process. Actions are immutable descriptions
(inputs, outputs, command) handed to an external executor, which owns
deduplication, parallel scheduling, change detection and retries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol, cast

import rustworkx as rx

from checkgraph.errors import CheckgraphActionConflictError, CheckgraphConfigurationError
from obs.otel import SCOPE_ACTIONS, stage_span
from serde_msgspec import StructBaseStrict, to_builtins
from utils.hashing import hash_json_canonical

logger = logging.getLogger(__name__)


class ActionBase(StructBaseStrict, frozen=True, tag_field="kind"):
    """Fields shared by every action description."""

    owner: str
    mnemonic: str
    inputs: tuple[str, ...]
    outputs: tuple[str, ...]
    progress_message: str | None = None

    def key(self) -> str:
        """Return a content hash identifying this action.

        Returns
        -------
        str
            SHA-256 over the canonical JSON form of the action.
        """
        return hash_json_canonical(to_builtins(self))


class RunAction(ActionBase, frozen=True, tag="run"):
    """Run an executable.

    With ``use_param_file`` the executor writes ``arguments`` one per line
    into a params file and passes ``@<file>`` instead.
    """

    executable: str
    arguments: tuple[str, ...] = ()
    use_param_file: bool = False
    env: tuple[tuple[str, str], ...] = ()

    def command_line(self) -> tuple[str, ...]:
        """Return the full argv."""
        return (self.executable, *self.arguments)


class CcCompileAction(ActionBase, frozen=True, tag="cc_compile"):
    """Compile one C translation unit into an object file."""

    compiler: str
    source: str
    output: str
    flags: tuple[str, ...] = ()

    def command_line(self) -> tuple[str, ...]:
        """Return the full argv."""
        return (self.compiler, *self.flags, "-c", self.source, "-o", self.output)


class CcLinkAction(ActionBase, frozen=True, tag="cc_link"):
    """Link object files into a dynamic library."""

    linker: str
    objects: tuple[str, ...]
    output: str
    libraries: tuple[str, ...] = ()
    flags: tuple[str, ...] = ("-shared",)

    def command_line(self) -> tuple[str, ...]:
        """Return the full argv."""
        return (self.linker, *self.flags, *self.objects, *self.libraries, "-o", self.output)


class ExpandTemplateAction(ActionBase, frozen=True, tag="expand_template"):
    """Write a file by literal key substitution over a template."""

    template: str
    output: str
    substitutions: tuple[tuple[str, str], ...] = ()


class WriteFileAction(ActionBase, frozen=True, tag="write_file"):
    """Write fixed content to a file."""

    output: str
    content: str
    is_executable: bool = False


Action = RunAction | CcCompileAction | CcLinkAction | ExpandTemplateAction | WriteFileAction


def expand_template(template_text: str, substitutions: Iterable[tuple[str, str]]) -> str:
    """Apply literal substitutions in order.

    Returns
    -------
    str
        Expanded text.
    """
    expanded = template_text
    for key, value in substitutions:
        expanded = expanded.replace(key, value)
    return expanded


class ActionExecutor(Protocol):
    """External executor contract for declared actions."""

    def run_generation(self, actions: Sequence[Action]) -> None:
        """Run a set of mutually independent actions."""
        ...


@dataclass(frozen=True)
class ActionGraph:
    """Rustworkx graph of actions plus lookup indices.

    An edge runs from the action producing an artifact to each action that
    consumes it.
    """

    graph: rx.PyDiGraph
    action_idx: Mapping[str, int]
    producers: Mapping[str, int]

    def actions(self) -> tuple[Action, ...]:
        """Return all actions sorted by key."""
        return tuple(
            cast("Action", self.graph[idx])
            for _, idx in sorted(self.action_idx.items())
        )

    def producer_of(self, path: str) -> Action | None:
        """Return the action declaring ``path`` as an output, if any."""
        idx = self.producers.get(path)
        if idx is None:
            return None
        return cast("Action", self.graph[idx])

    def dependencies_of(self, action: Action) -> tuple[Action, ...]:
        """Return the actions whose outputs ``action`` consumes."""
        idx = self.action_idx[action.key()]
        return tuple(
            cast("Action", self.graph[pred])
            for pred in sorted(self.graph.predecessor_indices(idx))
        )

    def generations(self) -> tuple[tuple[Action, ...], ...]:
        """Return topological generations with a deterministic member order.

        Returns
        -------
        tuple[tuple[Action, ...], ...]
            Waves of actions; every action only depends on earlier waves.
        """
        waves: list[tuple[Action, ...]] = []
        for generation in rx.topological_generations(self.graph):
            members = [cast("Action", self.graph[idx]) for idx in generation]
            members.sort(key=lambda action: (action.owner, action.mnemonic, action.key()))
            waves.append(tuple(members))
        return tuple(waves)


def build_action_graph(actions: Iterable[Action]) -> ActionGraph:
    """Link actions by the artifacts they produce and consume.

    Identical actions collapse into one node.

    Returns
    -------
    ActionGraph
        Acyclic action graph.

    Raises
    ------
    CheckgraphActionConflictError
        Raised when two different actions declare the same output.
    CheckgraphConfigurationError
        Raised when the actions form a cycle.
    """
    with stage_span("checkgraph.action_graph", stage="action_graph", scope_name=SCOPE_ACTIONS):
        graph = rx.PyDiGraph(check_cycle=False, multigraph=False)
        action_idx: dict[str, int] = {}
        producers: dict[str, int] = {}
        for action in actions:
            key = action.key()
            if key in action_idx:
                continue
            idx = graph.add_node(action)
            action_idx[key] = idx
            for output in action.outputs:
                existing = producers.get(output)
                if existing is not None:
                    other = cast("Action", graph[existing])
                    msg = (
                        f"Output {output!r} is declared by both {other.owner} "
                        f"({other.mnemonic}) and {action.owner} ({action.mnemonic})."
                    )
                    raise CheckgraphActionConflictError(msg)
                producers[output] = idx
        for idx in graph.node_indices():
            consumer = cast("Action", graph[idx])
            for path in consumer.inputs:
                producer = producers.get(path)
                if producer is None or producer == idx:
                    continue
                if not graph.has_edge(producer, idx):
                    graph.add_edge(producer, idx, path)
        if not rx.is_directed_acyclic_graph(graph):
            msg = "Declared actions form a dependency cycle."
            raise CheckgraphConfigurationError(msg)
        logger.debug(
            "Built action graph with %d actions and %d edges.",
            graph.num_nodes(),
            graph.num_edges(),
        )
        return ActionGraph(graph=graph, action_idx=action_idx, producers=producers)


def submit_action_graph(graph: ActionGraph, executor: ActionExecutor) -> int:
    """Hand every generation to the executor in dependency order.

    Returns
    -------
    int
        Number of submitted actions.
    """
    submitted = 0
    for generation in graph.generations():
        executor.run_generation(generation)
        submitted += len(generation)
    return submitted


def action_graph_payload(graph: ActionGraph) -> Mapping[str, object]:
    """Return a deterministic payload describing the action graph.

    Returns
    -------
    Mapping[str, object]
        Actions keyed by hash plus generation waves of keys.
    """
    return {
        "actions": {action.key(): to_builtins(action) for action in graph.actions()},
        "generations": [
            [action.key() for action in generation] for generation in graph.generations()
        ],
    }


__all__ = [
    "Action",
    "ActionBase",
    "ActionExecutor",
    "ActionGraph",
    "CcCompileAction",
    "CcLinkAction",
    "ExpandTemplateAction",
    "RunAction",
    "WriteFileAction",
    "action_graph_payload",
    "build_action_graph",
    "expand_template",
    "submit_action_graph",
]
