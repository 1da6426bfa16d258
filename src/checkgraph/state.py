"""Immutable per-node state propagated along dependency edges."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from checkgraph.artifacts import Artifact, SourceFile
from checkgraph.cc_context import CompilationContext
from serde_msgspec import StructBaseHotPath


class CacheMapEntry(StructBaseHotPath, frozen=True):
    """A source and the cache artifacts the checker reuses for it."""

    source: SourceFile
    outputs: tuple[Artifact, ...]

    def arguments(self) -> tuple[str, ...]:
        """Return ``SRC OUT...`` command-line items, kept adjacent."""
        return (self.source.path, *(output.path for output in self.outputs))


class CompiledGroup(StructBaseHotPath, frozen=True):
    """Sources compiled together into one native translation unit."""

    name: str
    sources: tuple[SourceFile, ...]

    def descriptor(self) -> str:
        """Return the ``name:path1,path2`` descriptor for the compiler."""
        return format_group(self.name, [source.path for source in self.sources])


class NodeState(StructBaseHotPath, frozen=True):
    """Merged transitive state of one node for one Python version.

    Every field except ``cache_map`` is a set union of the node's own
    contribution and its dependencies' states. ``cache_map`` keeps
    contributor order and holds each source identity once.
    """

    sources: frozenset[SourceFile] = frozenset()
    package_roots: frozenset[str] = frozenset()
    generated_outputs: frozenset[Artifact] = frozenset()
    cache_map: tuple[CacheMapEntry, ...] = ()
    reports: frozenset[Artifact] = frozenset()
    compiled_groups: frozenset[CompiledGroup] = frozenset()
    extension_modules: frozenset[Artifact] = frozenset()
    native_context: CompilationContext | None = None

    @property
    def is_empty(self) -> bool:
        """Return True when no source is reachable from the node."""
        return not self.sources

    def payload(self) -> Mapping[str, object]:
        """Return a deterministic mapping payload for diagnostics.

        Returns
        -------
        Mapping[str, object]
            Serialized state with sorted set members.
        """
        context = self.native_context
        return {
            "sources": sorted(source.path for source in self.sources),
            "package_roots": sorted(self.package_roots),
            "generated_outputs": sorted(artifact.path for artifact in self.generated_outputs),
            "cache_map": [list(entry.arguments()) for entry in self.cache_map],
            "reports": sorted(artifact.path for artifact in self.reports),
            "compiled_groups": sorted(group.descriptor() for group in self.compiled_groups),
            "extension_modules": sorted(
                artifact.path for artifact in self.extension_modules
            ),
            "native_context": (
                None
                if context is None
                else {
                    "headers": sorted(header.path for header in context.headers),
                    "includes": sorted(context.includes),
                }
            ),
        }


EMPTY_STATE = NodeState()


def format_group(name: str, paths: Sequence[str]) -> str:
    """Return a group descriptor.

    Returns
    -------
    str
        ``name:path1,path2,...``.
    """
    return f"{name}:{','.join(paths)}"


def union_transitive[T](direct: Iterable[T], transitive: Iterable[Iterable[T]]) -> frozenset[T]:
    """Return the deduplicated union of direct items and dependency sets.

    Returns
    -------
    frozenset[T]
        Union of all items.
    """
    merged: set[T] = set(direct)
    for items in transitive:
        merged.update(items)
    return frozenset(merged)


def merge_cache_maps(
    direct: Sequence[CacheMapEntry],
    transitive: Sequence[Sequence[CacheMapEntry]],
) -> tuple[CacheMapEntry, ...]:
    """Concatenate dependency cache maps and own entries, first entry wins.

    Dependencies come first in declaration order, then the node's own
    entries in source declaration order.

    Returns
    -------
    tuple[CacheMapEntry, ...]
        Ordered, duplicate-free cache map.
    """
    seen: set[SourceFile] = set()
    merged: list[CacheMapEntry] = []
    for entries in (*transitive, direct):
        for entry in entries:
            if entry.source in seen:
                continue
            seen.add(entry.source)
            merged.append(entry)
    return tuple(merged)


__all__ = [
    "EMPTY_STATE",
    "CacheMapEntry",
    "CompiledGroup",
    "NodeState",
    "format_group",
    "merge_cache_maps",
    "union_transitive",
]
