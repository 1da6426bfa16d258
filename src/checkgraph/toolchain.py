"""Python versions, build tags, and interpreter selection."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum

from checkgraph.errors import CheckgraphConfigurationError
from serde_msgspec import StructBaseStrict

LEGACY_VERSION = "2.7"
PY3_VERSION = "3.7"
SUPPORTED_VERSIONS: tuple[str, ...] = (LEGACY_VERSION, PY3_VERSION)

# Extensions are built for a single interpreter ABI.
EXTENSION_ABI_TAG = "cpython-37m-x86_64-linux-gnu"


class BuildTag(StrEnum):
    """Interpreter build tags."""

    CPYTHON_37 = "cpython-37"
    CPYTHON_27 = "cpython-27"


VERSION_BUILD_TAGS: Mapping[str, BuildTag] = {
    LEGACY_VERSION: BuildTag.CPYTHON_27,
    PY3_VERSION: BuildTag.CPYTHON_37,
}

# Interpreter target aliases accepted in place of a build tag.
_BUILD_TAG_ALIASES: Mapping[str, BuildTag] = {
    BuildTag.CPYTHON_37.value: BuildTag.CPYTHON_37,
    BuildTag.CPYTHON_27.value: BuildTag.CPYTHON_27,
    "//thirdparty/cpython:drte-interpreter-37": BuildTag.CPYTHON_37,
    "//thirdparty/cpython:drte-interpreter": BuildTag.CPYTHON_27,
}


class InterpreterSpec(StructBaseStrict, frozen=True):
    """Declared interpreter for one build tag.

    Exactly one of ``exe`` (an absolute path on the build host) or
    ``exe_file`` (a file inside the workspace) identifies the interpreter.
    """

    build_tag: BuildTag
    exe: str | None = None
    exe_file: str | None = None
    headers: tuple[str, ...] = ()
    runtime: tuple[str, ...] = ()


class ResolvedInterpreter(StructBaseStrict, frozen=True):
    """Interpreter after path resolution."""

    path: str
    runfiles_path: str
    build_tag: BuildTag
    headers: tuple[str, ...] = ()
    runtime: tuple[str, ...] = ()


def resolve_interpreter(spec: InterpreterSpec) -> ResolvedInterpreter:
    """Resolve an interpreter declaration into build and runfiles paths.

    Returns
    -------
    ResolvedInterpreter
        Interpreter with both execution and runfiles paths.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when neither ``exe`` nor ``exe_file`` is set.
    """
    if spec.exe:
        path = spec.exe
        runfiles_path = spec.exe
    elif spec.exe_file:
        path = spec.exe_file
        runfiles_path = f"$RUNFILES/{spec.exe_file}"
    else:
        msg = f"Interpreter for {spec.build_tag}: exe or exe_file is mandatory."
        raise CheckgraphConfigurationError(msg)
    return ResolvedInterpreter(
        path=path,
        runfiles_path=runfiles_path,
        build_tag=spec.build_tag,
        headers=spec.headers,
        runtime=spec.runtime,
    )


def validate_python_version(python_version: str) -> str:
    """Return the version when supported.

    Returns
    -------
    str
        The validated version string.

    Raises
    ------
    CheckgraphConfigurationError
        Raised for versions outside ``SUPPORTED_VERSIONS``.
    """
    if python_version not in SUPPORTED_VERSIONS:
        msg = (
            f"Unsupported python_version {python_version!r}; "
            f"expected one of {list(SUPPORTED_VERSIONS)}."
        )
        raise CheckgraphConfigurationError(msg)
    return python_version


def is_legacy_version(python_version: str) -> bool:
    """Return True for the baseline language version."""
    return python_version == LEGACY_VERSION


def version_dash(python_version: str) -> str:
    """Return ``3-7`` style version text."""
    return python_version.replace(".", "-")


def build_tag_for(python_or_build_tag: str) -> BuildTag:
    """Return the build tag for a tag string or interpreter alias.

    Returns
    -------
    BuildTag
        Canonical build tag.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when the value does not name a known interpreter.
    """
    tag = _BUILD_TAG_ALIASES.get(python_or_build_tag)
    if tag is None:
        msg = f"Unknown interpreter or build tag {python_or_build_tag!r}."
        raise CheckgraphConfigurationError(msg)
    return tag


def default_build_tag(*, python2_compatible: bool) -> BuildTag:
    """Return the default build tag for a compatibility declaration."""
    if not python2_compatible:
        return BuildTag.CPYTHON_37
    return BuildTag.CPYTHON_27


def select_interpreter(
    interpreters: Mapping[BuildTag, InterpreterSpec],
    build_tag: BuildTag,
) -> ResolvedInterpreter:
    """Return the resolved interpreter registered for a build tag.

    Returns
    -------
    ResolvedInterpreter
        Interpreter for ``build_tag``.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when no interpreter is registered for the tag.
    """
    spec = interpreters.get(build_tag)
    if spec is None:
        msg = f"No interpreter registered for build tag {build_tag}."
        raise CheckgraphConfigurationError(msg)
    return resolve_interpreter(spec)


__all__ = [
    "EXTENSION_ABI_TAG",
    "LEGACY_VERSION",
    "PY3_VERSION",
    "SUPPORTED_VERSIONS",
    "VERSION_BUILD_TAGS",
    "BuildTag",
    "InterpreterSpec",
    "ResolvedInterpreter",
    "build_tag_for",
    "default_build_tag",
    "is_legacy_version",
    "resolve_interpreter",
    "select_interpreter",
    "validate_python_version",
    "version_dash",
]
