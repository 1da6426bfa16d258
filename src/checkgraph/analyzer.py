"""Per-node source resolution and package-root computation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from checkgraph.artifacts import SourceFile
from checkgraph.nodes import NodeInputs
from checkgraph.state import NodeState, union_transitive
from serde_msgspec import StructBaseHotPath


class AnalyzedNode(StructBaseHotPath, frozen=True):
    """Own contribution of a node plus its transitive sources and roots."""

    own_sources: tuple[SourceFile, ...]
    sources: frozenset[SourceFile]
    package_roots: frozenset[str]

    @property
    def is_empty(self) -> bool:
        """Return True when nothing reachable needs checking."""
        return not self.sources


def resolve_own_sources(
    srcs: Sequence[SourceFile],
    stub_srcs: Sequence[SourceFile],
) -> tuple[SourceFile, ...]:
    """Apply stub precedence to a node's declared sources.

    A plain source is dropped when a stub with the same path plus the stub
    suffix is declared alongside it.

    Returns
    -------
    tuple[SourceFile, ...]
        Surviving plain sources followed by every stub source.
    """
    stub_paths = {stub.path for stub in stub_srcs}
    plain = tuple(src for src in srcs if src.stub_path not in stub_paths)
    return (*plain, *stub_srcs)


def stub_tree_roots(stub_srcs: Iterable[SourceFile]) -> tuple[str, ...]:
    """Return import roots for version-numbered stub layouts.

    Paths look like ``<prefix>/{stdlib,third_party}/<version>/<path>`` where
    ``<version>`` is ``2``, ``3``, ``2and3``, ``3.7`` and so on. The root is
    the prefix ending at the first segment starting with a digit; stubs
    without such a segment contribute nothing.

    Returns
    -------
    tuple[str, ...]
        One root per matching stub, in input order.
    """
    roots: list[str] = []
    for src in stub_srcs:
        prefix: list[str] = []
        for part in src.path.split("/"):
            prefix.append(part)
            if part and part[0].isdigit():
                roots.append("/".join(prefix))
                break
    return tuple(roots)


def own_package_roots(inputs: NodeInputs, own_sources: Sequence[SourceFile]) -> tuple[str, ...]:
    """Return the roots a node contributes itself.

    Returns
    -------
    tuple[str, ...]
        Source roots, synthesized stub roots for non-invoking nodes and the
        node's extra import roots for invoking nodes.
    """
    roots = [src.root for src in own_sources]
    if inputs.invoking:
        roots.extend(inputs.extra_pythonpath)
    else:
        roots.extend(stub_tree_roots(inputs.stub_srcs))
    return tuple(roots)


def analyze_node(inputs: NodeInputs, dep_states: Sequence[NodeState]) -> AnalyzedNode:
    """Merge a node's own sources and roots with its dependencies' states.

    Returns
    -------
    AnalyzedNode
        Own contribution and transitive source/root sets.
    """
    own_sources = resolve_own_sources(inputs.srcs, inputs.stub_srcs)
    return AnalyzedNode(
        own_sources=own_sources,
        sources=union_transitive(own_sources, (state.sources for state in dep_states)),
        package_roots=union_transitive(
            own_package_roots(inputs, own_sources),
            (state.package_roots for state in dep_states),
        ),
    )


__all__ = [
    "AnalyzedNode",
    "analyze_node",
    "own_package_roots",
    "resolve_own_sources",
    "stub_tree_roots",
]
