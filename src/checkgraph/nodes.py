"""Closed set of build node kinds and the rustworkx-backed target graph."""

from __future__ import annotations

import posixpath
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TypeGuard, cast

import msgspec
import rustworkx as rx

from checkgraph.artifacts import SourceFile, canonical_label
from checkgraph.errors import CheckgraphConfigurationError
from checkgraph.toolchain import LEGACY_VERSION
from serde_msgspec import StructBaseStrict, convert, validation_error_payload

_CYCLE_EDGE_MIN_LEN = 2


class NodeBase(StructBaseStrict, frozen=True, tag_field="kind"):
    """Common fields of every supported node."""

    label: str


class MypyBootstrap(NodeBase, frozen=True, tag="mypy_bootstrap"):
    """Bundled stub tree checked at its own Python version."""

    stub_srcs: tuple[SourceFile, ...] = ()
    python_version: str = LEGACY_VERSION


class _PySourcesNode(NodeBase, frozen=True):
    srcs: tuple[SourceFile, ...] = ()
    stub_srcs: tuple[SourceFile, ...] = ()
    deps: tuple[str, ...] = ()
    extra_pythonpath: tuple[str, ...] = ()


class PyLibrary(_PySourcesNode, frozen=True, tag="py_library"):
    """Python library, optionally compiled into native extensions."""

    compiled: bool = False


class PyBinary(_PySourcesNode, frozen=True, tag="py_binary"):
    """Python binary."""


class PyTest(_PySourcesNode, frozen=True, tag="py_test"):
    """Python test."""


class PyCompiledBinary(NodeBase, frozen=True, tag="py_compiled_binary"):
    """Binary that bundles the native extensions of its dependencies."""

    srcs: tuple[SourceFile, ...] = ()
    deps: tuple[str, ...] = ()
    extra_pythonpath: tuple[str, ...] = ()
    python2_compatible: bool = True


class ServicesInternalTest(NodeBase, frozen=True, tag="services_internal_test"):
    """Test wrapper around a single designated binary."""

    bin: str


class ForeignNode(StructBaseStrict, frozen=True):
    """Node of a kind the walker does not descend into."""

    label: str
    kind: str


SupportedNode = (
    MypyBootstrap | PyLibrary | PyBinary | PyTest | PyCompiledBinary | ServicesInternalTest
)
AnyNode = SupportedNode | ForeignNode

_SUPPORTED_TYPES: tuple[type[NodeBase], ...] = (
    MypyBootstrap,
    PyLibrary,
    PyBinary,
    PyTest,
    PyCompiledBinary,
    ServicesInternalTest,
)
SUPPORTED_KINDS: frozenset[str] = frozenset(
    cast("str", node_type.__struct_config__.tag) for node_type in _SUPPORTED_TYPES
)
_WRAPPED_BINARY_KIND = "services_internal_test"


class NodeInputs(StructBaseStrict, frozen=True):
    """Uniform analyzer inputs derived from one node variant.

    ``invoking`` is False for nodes without a resolvable source target of
    their own (stub bootstraps and wrapped binaries).
    """

    label: str
    srcs: tuple[SourceFile, ...] = ()
    stub_srcs: tuple[SourceFile, ...] = ()
    deps: tuple[str, ...] = ()
    extra_pythonpath: tuple[str, ...] = ()
    compiled: bool = False
    invoking: bool = True
    pinned_version: str | None = None


def node_inputs(node: SupportedNode) -> NodeInputs:
    """Return analyzer inputs for a supported node.

    The wrapped binary is rewritten to a one-element dependency list.

    Returns
    -------
    NodeInputs
        Uniform inputs for the analyzer.
    """
    match node:
        case MypyBootstrap():
            return NodeInputs(
                label=node.label,
                stub_srcs=node.stub_srcs,
                invoking=False,
                pinned_version=node.python_version,
            )
        case ServicesInternalTest():
            return NodeInputs(label=node.label, deps=(node.bin,), invoking=False)
        case PyLibrary():
            return NodeInputs(
                label=node.label,
                srcs=node.srcs,
                stub_srcs=node.stub_srcs,
                deps=node.deps,
                extra_pythonpath=node.extra_pythonpath,
                compiled=node.compiled,
            )
        case PyBinary() | PyTest():
            return NodeInputs(
                label=node.label,
                srcs=node.srcs,
                stub_srcs=node.stub_srcs,
                deps=node.deps,
                extra_pythonpath=node.extra_pythonpath,
            )
        case PyCompiledBinary():
            return NodeInputs(
                label=node.label,
                srcs=node.srcs,
                deps=node.deps,
                extra_pythonpath=node.extra_pythonpath,
            )


def is_supported(node: AnyNode) -> TypeGuard[SupportedNode]:
    """Return True for node kinds the walker descends into."""
    return isinstance(node, _SUPPORTED_TYPES)


def declared_dependencies(node: AnyNode) -> tuple[str, ...]:
    """Return the labels a node declares as dependencies."""
    match node:
        case ForeignNode() | MypyBootstrap():
            return ()
        case ServicesInternalTest():
            return (node.bin,)
        case _:
            return node.deps


# -----------------------------------------------------------------------------
# Manifest decoding
# -----------------------------------------------------------------------------


def _normalize_source(value: object) -> object:
    if isinstance(value, str):
        return {"path": value}
    return value


def _normalize_node_payload(raw: Mapping[str, object]) -> dict[str, object]:
    payload = dict(raw)
    payload["label"] = canonical_label(cast("str", raw["label"]))
    for key in ("srcs", "stub_srcs"):
        values = payload.get(key)
        if isinstance(values, list):
            payload[key] = [_normalize_source(value) for value in values]
    deps = payload.get("deps")
    if isinstance(deps, list):
        payload["deps"] = [canonical_label(str(dep)) for dep in deps]
    bin_label = payload.get("bin")
    if isinstance(bin_label, str):
        payload["bin"] = canonical_label(bin_label)
    return payload


def _require_source_extensions(payload: Mapping[str, object], *, label: str) -> None:
    for key in ("srcs", "stub_srcs"):
        values = payload.get(key)
        if not isinstance(values, list):
            continue
        for value in values:
            path = value.get("path") if isinstance(value, Mapping) else None
            if isinstance(path, str) and "." not in posixpath.basename(path):
                msg = f"Source {path!r} of {label} has no file extension."
                raise CheckgraphConfigurationError(msg)


def decode_node(raw: Mapping[str, object]) -> AnyNode:
    """Decode one manifest entry into a node variant.

    Returns
    -------
    AnyNode
        Supported node variant, or ``ForeignNode`` for other kinds.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when the entry is malformed or combines incompatible fields.
    """
    kind = raw.get("kind")
    label = raw.get("label")
    if not isinstance(kind, str) or not isinstance(label, str):
        msg = f"Manifest node requires string 'kind' and 'label' fields: {dict(raw)!r}."
        raise CheckgraphConfigurationError(msg)
    if kind not in SUPPORTED_KINDS:
        return ForeignNode(label=canonical_label(label), kind=kind)
    if "bin" in raw and "deps" not in raw and kind != _WRAPPED_BINARY_KIND:
        msg = f"Expected rule kind {_WRAPPED_BINARY_KIND} for {label}, got {kind}."
        raise CheckgraphConfigurationError(msg)
    payload = _normalize_node_payload(raw)
    _require_source_extensions(payload, label=cast("str", payload["label"]))
    try:
        return convert(payload, target_type=SupportedNode)
    except msgspec.ValidationError as exc:
        details = validation_error_payload(exc)
        msg = f"Invalid {kind} node {label}: {details}"
        raise CheckgraphConfigurationError(msg) from exc


def decode_manifest(payload: object) -> tuple[AnyNode, ...]:
    """Decode a ``{"nodes": [...]}`` manifest payload.

    Returns
    -------
    tuple[AnyNode, ...]
        Decoded nodes in declaration order.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when the payload does not contain a node list.
    """
    if not isinstance(payload, Mapping):
        msg = "Manifest must be a mapping with a 'nodes' list."
        raise CheckgraphConfigurationError(msg)
    entries = payload.get("nodes")
    if not isinstance(entries, list):
        msg = "Manifest must be a mapping with a 'nodes' list."
        raise CheckgraphConfigurationError(msg)
    nodes: list[AnyNode] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            msg = f"Manifest node must be a mapping, got {type(entry).__name__}."
            raise CheckgraphConfigurationError(msg)
        nodes.append(decode_node(entry))
    return tuple(nodes)


def read_manifest(path: Path) -> object:
    """Read a JSON or TOML manifest file without decoding its nodes.

    Returns
    -------
    object
        Raw manifest payload.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when the file cannot be read or parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix == ".toml":
            return msgspec.toml.decode(text, type=object, strict=True)
        return msgspec.json.decode(text, type=object, strict=True)
    except (OSError, msgspec.DecodeError) as exc:
        msg = f"Failed to read manifest {str(path)!r}: {exc}"
        raise CheckgraphConfigurationError(msg) from exc


def load_manifest(path: Path) -> tuple[AnyNode, ...]:
    """Load a JSON or TOML manifest file.

    Returns
    -------
    tuple[AnyNode, ...]
        Decoded nodes.
    """
    return decode_manifest(read_manifest(path))


# -----------------------------------------------------------------------------
# Target graph
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class BuildGraph:
    """Rustworkx target graph plus label lookup.

    Edges point from a node to each dependency it declares.
    """

    graph: rx.PyDiGraph
    node_idx: Mapping[str, int]

    def node(self, label: str) -> AnyNode:
        """Return the node registered for a label.

        Returns
        -------
        AnyNode
            Node payload.

        Raises
        ------
        CheckgraphConfigurationError
            Raised when the label is not part of the graph.
        """
        idx = self.node_idx.get(canonical_label(label))
        if idx is None:
            msg = f"Unknown target {label!r}."
            raise CheckgraphConfigurationError(msg)
        return cast("AnyNode", self.graph[idx])

    def __contains__(self, label: object) -> bool:
        return isinstance(label, str) and canonical_label(label) in self.node_idx

    def labels(self) -> tuple[str, ...]:
        """Return all labels in sorted order."""
        return tuple(sorted(self.node_idx))


def build_graph_from_nodes(
    nodes: Sequence[AnyNode],
    *,
    implicit_deps: Iterable[str] = (),
) -> BuildGraph:
    """Index nodes into a target graph and validate its shape.

    ``implicit_deps`` are labels every invoking node depends on in addition
    to its declared dependencies; they must be present in ``nodes``.

    Returns
    -------
    BuildGraph
        Validated acyclic target graph.

    Raises
    ------
    CheckgraphConfigurationError
        Raised for duplicate labels, unknown dependencies or cycles.
    """
    graph = rx.PyDiGraph(check_cycle=False, multigraph=False, node_count_hint=len(nodes))
    node_idx: dict[str, int] = {}
    for node in nodes:
        if node.label in node_idx:
            msg = f"Duplicate target label {node.label!r}."
            raise CheckgraphConfigurationError(msg)
        node_idx[node.label] = graph.add_node(node)
    implicit = tuple(canonical_label(label) for label in implicit_deps)
    for label in implicit:
        if label not in node_idx:
            msg = f"Implicit dependency {label!r} is not declared in the manifest."
            raise CheckgraphConfigurationError(msg)
    for node in nodes:
        source = node_idx[node.label]
        for dep in declared_dependencies(node):
            target = node_idx.get(dep)
            if target is None:
                msg = f"Target {node.label!r} depends on unknown target {dep!r}."
                raise CheckgraphConfigurationError(msg)
            graph.add_edge(source, target, "deps")
        if isinstance(node, (PyLibrary, PyBinary, PyTest, PyCompiledBinary)):
            for label in implicit:
                graph.add_edge(source, node_idx[label], "implicit")
    if not rx.is_directed_acyclic_graph(graph):
        cycle = _cycle_labels(graph)
        msg = f"Dependency cycle between targets: {' -> '.join(cycle)}."
        raise CheckgraphConfigurationError(msg)
    return BuildGraph(graph=graph, node_idx=node_idx)


def _cycle_labels(graph: rx.PyDiGraph) -> list[str]:
    labels: list[str] = []
    for edge in rx.digraph_find_cycle(graph):
        if isinstance(edge, tuple) and len(edge) >= _CYCLE_EDGE_MIN_LEN:
            labels.append(cast("AnyNode", graph[edge[0]]).label)
    return labels


__all__ = [
    "SUPPORTED_KINDS",
    "AnyNode",
    "BuildGraph",
    "ForeignNode",
    "MypyBootstrap",
    "NodeInputs",
    "PyBinary",
    "PyCompiledBinary",
    "PyLibrary",
    "PyTest",
    "ServicesInternalTest",
    "SupportedNode",
    "build_graph_from_nodes",
    "declared_dependencies",
    "is_supported",
    "decode_manifest",
    "decode_node",
    "load_manifest",
    "node_inputs",
    "read_manifest",
]
