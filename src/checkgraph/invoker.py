"""Type-check invocation: report naming and mypy argument assembly."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from checkgraph.actions import RunAction
from checkgraph.artifacts import Artifact, Label, SourceFile
from checkgraph.config import CheckgraphConfig
from checkgraph.outputs import cache_map_arguments
from checkgraph.state import CacheMapEntry, CompiledGroup
from checkgraph.toolchain import is_legacy_version, version_dash

MYPY_MNEMONIC = "mypy"


def report_file_name(label: Label, python_version: str) -> str:
    """Return the JUnit report file name for a node and version.

    Returns
    -------
    str
        ``<name>-<version>-junit.xml`` with ``/`` and ``.`` turned into ``-``.
    """
    return f"{label.name.replace('/', '-')}-{version_dash(python_version)}-junit.xml"


def declare_report(label: Label, python_version: str, *, output_root: str) -> Artifact:
    """Declare the report artifact in the node's package output directory.

    Returns
    -------
    Artifact
        JUnit report artifact.
    """
    return label.declare(report_file_name(label, python_version), output_root=output_root)


def mypy_arguments(
    *,
    python_version: str,
    package_roots: Iterable[str],
    report: Artifact,
    cache_map: Sequence[CacheMapEntry],
    sources: Iterable[SourceFile],
    groups: Iterable[CompiledGroup] | None = None,
) -> tuple[str, ...]:
    """Assemble the checker command line.

    Set-valued inputs are emitted in sorted order; the cache map keeps its
    merge order. ``groups`` switches on native compilation and is emitted
    as a leading ``--mypyc`` descriptor list.

    Returns
    -------
    tuple[str, ...]
        Arguments in the order the checker expects.
    """
    arguments: list[str] = []
    if groups is not None:
        descriptors = sorted(group.descriptor() for group in groups)
        arguments.extend(("--mypyc", ";".join(descriptors), report.root))
    arguments.append("--bazel")
    if not is_legacy_version(python_version):
        arguments.extend(("--python-version", python_version))
    for root in sorted(package_roots):
        arguments.extend(("--package-root", root))
    arguments.extend(("--no-error-summary", "--incremental", "--junit-xml", report.path))
    arguments.append("--cache-map")
    arguments.extend(cache_map_arguments(cache_map))
    arguments.append("--")
    arguments.extend(sorted(source.path for source in sources))
    return tuple(arguments)


def declare_type_check(
    label: Label,
    *,
    config: CheckgraphConfig,
    arguments: Sequence[str],
    sources: Iterable[SourceFile],
    reused_outputs: Iterable[Artifact],
    outputs: Iterable[Artifact],
) -> RunAction:
    """Describe one checker invocation.

    ``reused_outputs`` are the caches declared by dependencies; the checker
    reads them instead of re-verifying upstream files.

    Returns
    -------
    RunAction
        Action run through a multiline params file.
    """
    inputs = {source.path for source in sources}
    inputs.update(artifact.path for artifact in reused_outputs)
    inputs.update(config.plugins)
    inputs.add(config.mypy_ini)
    return RunAction(
        owner=str(label),
        mnemonic=MYPY_MNEMONIC,
        inputs=tuple(sorted(inputs)),
        outputs=tuple(sorted(artifact.path for artifact in outputs)),
        progress_message=f"Type-checking {label}",
        executable=config.mypy,
        arguments=tuple(arguments),
        use_param_file=True,
    )


__all__ = [
    "MYPY_MNEMONIC",
    "declare_report",
    "declare_type_check",
    "mypy_arguments",
    "report_file_name",
]
