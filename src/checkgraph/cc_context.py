"""Native compilation contexts and their order-independent merge."""

from __future__ import annotations

from collections.abc import Iterable

from checkgraph.artifacts import Artifact
from serde_msgspec import StructBaseHotPath


class CompilationContext(StructBaseHotPath, frozen=True):
    """Headers and include paths a native compile step can see."""

    headers: frozenset[Artifact] = frozenset()
    includes: frozenset[str] = frozenset()
    system_includes: frozenset[str] = frozenset()
    defines: frozenset[str] = frozenset()

    def compile_flags(self) -> tuple[str, ...]:
        """Return deterministic compiler flags for this context.

        Returns
        -------
        tuple[str, ...]
            ``-D``, ``-I`` and ``-isystem`` flags in sorted order.
        """
        flags: list[str] = [f"-D{define}" for define in sorted(self.defines)]
        flags.extend(f"-I{path}" for path in sorted(self.includes))
        for path in sorted(self.system_includes):
            flags.extend(("-isystem", path))
        return tuple(flags)


def merge_compilation_contexts(
    contexts: Iterable[CompilationContext | None],
) -> CompilationContext:
    """Union compilation contexts; absent entries are ignored.

    The result does not depend on the order of ``contexts`` and merging a
    context twice is a no-op.

    Returns
    -------
    CompilationContext
        Merged context (empty when nothing was supplied).
    """
    headers: set[Artifact] = set()
    includes: set[str] = set()
    system_includes: set[str] = set()
    defines: set[str] = set()
    for context in contexts:
        if context is None:
            continue
        headers.update(context.headers)
        includes.update(context.includes)
        system_includes.update(context.system_includes)
        defines.update(context.defines)
    return CompilationContext(
        headers=frozenset(headers),
        includes=frozenset(includes),
        system_includes=frozenset(system_includes),
        defines=frozenset(defines),
    )


__all__ = ["CompilationContext", "merge_compilation_contexts"]
