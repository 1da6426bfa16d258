"""Check-test aggregation and compiled-binary extension gathering."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from checkgraph.actions import WriteFileAction
from checkgraph.artifacts import Artifact, Label, canonical_label
from checkgraph.errors import CheckgraphConfigurationError
from checkgraph.nodes import PyCompiledBinary
from checkgraph.state import union_transitive
from checkgraph.toolchain import (
    LEGACY_VERSION,
    PY3_VERSION,
    ResolvedInterpreter,
    default_build_tag,
    select_interpreter,
    validate_python_version,
)
from checkgraph.walker import GraphWalker

logger = logging.getLogger(__name__)

CHECK_TEST_TAG = "mypy"
DEFAULT_TEST_SIZE = "small"
LEGACY_TARGET_SUFFIX = "-python2"

TEST_SCRIPT_TEMPLATE = """
$RUNFILES/{program} --label {label} {files} >$XML_OUTPUT_FILE
"""


@dataclass(frozen=True)
class CheckTestTarget:
    """One check test at one Python version."""

    label: str
    deps: tuple[str, ...]
    python_version: str
    size: str = DEFAULT_TEST_SIZE
    tags: tuple[str, ...] = (CHECK_TEST_TAG,)


def check_test_targets(
    label: str,
    deps: Sequence[str],
    *,
    size: str = DEFAULT_TEST_SIZE,
    tags: Sequence[str] = (),
    python2_compatible: bool = True,
    python3_compatible: bool = True,
) -> tuple[CheckTestTarget, ...]:
    """Expand a check test into one target per compatible version.

    When both versions are requested the legacy target gets the
    ``-python2`` suffix and the Python 3 target keeps the plain name.

    Returns
    -------
    tuple[CheckTestTarget, ...]
        Targets in legacy-then-Python-3 order.
    """
    base = canonical_label(label)
    variants: list[tuple[str, str]] = []
    if python2_compatible:
        suffix = LEGACY_TARGET_SUFFIX if python3_compatible else ""
        variants.append((suffix, LEGACY_VERSION))
    if python3_compatible:
        variants.append(("", PY3_VERSION))
    canonical_deps = tuple(canonical_label(dep) for dep in deps)
    return tuple(
        CheckTestTarget(
            label=base + suffix,
            deps=canonical_deps,
            python_version=python_version,
            size=size,
            tags=(*tags, CHECK_TEST_TAG),
        )
        for suffix, python_version in variants
    )


@dataclass(frozen=True)
class CheckTestPlan:
    """Script and runfiles of one check test."""

    target: CheckTestTarget
    script: Artifact
    reports: tuple[Artifact, ...]
    action: WriteFileAction

    @property
    def runfiles(self) -> tuple[str, ...]:
        """Return the report paths the script needs at run time."""
        return tuple(report.path for report in self.reports)


def plan_check_test(target: CheckTestTarget, walker: GraphWalker) -> CheckTestPlan:
    """Collect reachable reports and declare the verification script.

    The test itself performs no analysis; building its reports already ran
    every check.

    Returns
    -------
    CheckTestPlan
        Script artifact, reports and the action writing the script.
    """
    python_version = validate_python_version(target.python_version)
    states = walker.evaluate(target.deps, python_version)
    reports = tuple(
        sorted(
            union_transitive((), (state.reports for state in states)),
            key=lambda artifact: artifact.short_path,
        )
    )
    label = Label.parse(target.label)
    config = walker.config
    script = label.declare(f"{label.name}.out", output_root=config.output_root)
    content = TEST_SCRIPT_TEMPLATE.format(
        program=config.mypy_test,
        label=target.label,
        files=" ".join(report.short_path for report in reports),
    )
    action = WriteFileAction(
        owner=target.label,
        mnemonic="TestRunner",
        inputs=(),
        outputs=(script.path,),
        output=script.path,
        content=content,
        is_executable=True,
    )
    logger.debug("Check test %s reads %d reports.", target.label, len(reports))
    return CheckTestPlan(target=target, script=script, reports=reports, action=action)


@dataclass(frozen=True)
class CompiledBinaryPlan:
    """Interpreter and extension modules bundled into a compiled binary."""

    label: str
    interpreter: ResolvedInterpreter
    extension_modules: tuple[Artifact, ...]


def plan_compiled_binary(node: PyCompiledBinary, walker: GraphWalker) -> CompiledBinaryPlan:
    """Gather the transitive extension modules of a compiled binary.

    Returns
    -------
    CompiledBinaryPlan
        Extension modules of every dependency at the Python 3 version.

    Raises
    ------
    CheckgraphConfigurationError
        Raised when the binary is declared Python 2 compatible.
    """
    if node.python2_compatible:
        msg = f"{node.label}: Compiled binaries do not support Python 2."
        raise CheckgraphConfigurationError(msg)
    interpreter = select_interpreter(
        walker.config.interpreter_map(),
        default_build_tag(python2_compatible=node.python2_compatible),
    )
    states = walker.evaluate(node.deps, PY3_VERSION)
    modules = union_transitive((), (state.extension_modules for state in states))
    return CompiledBinaryPlan(
        label=node.label,
        interpreter=interpreter,
        extension_modules=tuple(sorted(modules, key=lambda artifact: artifact.path)),
    )


__all__ = [
    "CHECK_TEST_TAG",
    "DEFAULT_TEST_SIZE",
    "LEGACY_TARGET_SUFFIX",
    "TEST_SCRIPT_TEMPLATE",
    "CheckTestPlan",
    "CheckTestTarget",
    "CompiledBinaryPlan",
    "check_test_targets",
    "plan_check_test",
    "plan_compiled_binary",
]
