"""Per-source cache artifacts and the ordered cache map."""

from __future__ import annotations

from collections.abc import Sequence

from checkgraph.artifacts import Artifact, SourceFile
from checkgraph.state import CacheMapEntry
from serde_msgspec import StructBaseHotPath

CACHE_KINDS: tuple[str, ...] = ("meta", "data")
IR_KIND = "ir"


class SourceOutputs(StructBaseHotPath, frozen=True):
    """Artifacts the checker writes for one source."""

    source: SourceFile
    cache: tuple[Artifact, ...]
    ir: Artifact | None = None

    def all_outputs(self) -> tuple[Artifact, ...]:
        """Return cache files followed by the IR file, if any."""
        if self.ir is None:
            return self.cache
        return (*self.cache, self.ir)

    def cache_entry(self) -> CacheMapEntry:
        """Return the cache map entry for this source (IR excluded)."""
        return CacheMapEntry(source=self.source, outputs=self.cache)


def cache_file_name(source: SourceFile, python_version: str, kind: str) -> str:
    """Return ``<base>.<version>.<kind>.json`` for a source.

    Returns
    -------
    str
        Root-relative artifact path.
    """
    return f"{source.short_base}.{python_version}.{kind}.json"


def declare_source_outputs(
    source: SourceFile,
    *,
    python_version: str,
    compiled: bool,
    output_root: str,
) -> SourceOutputs:
    """Declare the cache artifacts for one source.

    Returns
    -------
    SourceOutputs
        ``meta``/``data`` files and, when compiling, the ``ir`` file.
    """
    cache = tuple(
        Artifact(root=output_root, short_path=cache_file_name(source, python_version, kind))
        for kind in CACHE_KINDS
    )
    ir = (
        Artifact(root=output_root, short_path=cache_file_name(source, python_version, IR_KIND))
        if compiled
        else None
    )
    return SourceOutputs(source=source, cache=cache, ir=ir)


def declare_node_outputs(
    own_sources: Sequence[SourceFile],
    *,
    python_version: str,
    compiled: bool,
    output_root: str,
) -> tuple[SourceOutputs, ...]:
    """Declare cache artifacts for a node's own sources in declaration order.

    Returns
    -------
    tuple[SourceOutputs, ...]
        One entry per own source.
    """
    return tuple(
        declare_source_outputs(
            source,
            python_version=python_version,
            compiled=compiled,
            output_root=output_root,
        )
        for source in own_sources
    )


def cache_map_arguments(entries: Sequence[CacheMapEntry]) -> tuple[str, ...]:
    """Flatten cache map entries into ``SRC OUT...`` items.

    Returns
    -------
    tuple[str, ...]
        Each source immediately followed by its outputs.
    """
    arguments: list[str] = []
    for entry in entries:
        arguments.extend(entry.arguments())
    return tuple(arguments)


__all__ = [
    "CACHE_KINDS",
    "IR_KIND",
    "SourceOutputs",
    "cache_file_name",
    "cache_map_arguments",
    "declare_node_outputs",
    "declare_source_outputs",
]
