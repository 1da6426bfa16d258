"""Tests for report naming and checker command-line assembly."""

from __future__ import annotations

from checkgraph.artifacts import Artifact, Label, SourceFile
from checkgraph.config import CheckgraphConfig
from checkgraph.invoker import (
    declare_report,
    declare_type_check,
    mypy_arguments,
    report_file_name,
)
from checkgraph.state import CacheMapEntry, CompiledGroup

REPORT = Artifact(root="out", short_path="pkg/b-3-7-junit.xml")
CACHE_MAP = (
    CacheMapEntry(
        source=SourceFile(path="pkg/b.py"),
        outputs=(
            Artifact(root="out", short_path="pkg/b.3.7.meta.json"),
            Artifact(root="out", short_path="pkg/b.3.7.data.json"),
        ),
    ),
)


def test_report_file_name_dashes_name_and_version() -> None:
    """Replace slashes in the name and dots in the version with dashes."""
    assert report_file_name(Label.parse("//pkg:sub/name"), "3.7") == "sub-name-3-7-junit.xml"


def test_declare_report_lives_in_package_directory() -> None:
    """Declare the report under the node's package output directory."""
    report = declare_report(Label.parse("//pkg/inner:lib"), "2.7", output_root="out")
    assert report.path == "out/pkg/inner/lib-2-7-junit.xml"


def test_mypy_arguments_order() -> None:
    """Assemble arguments in the order the checker expects."""
    arguments = mypy_arguments(
        python_version="3.7",
        package_roots={"z_root", ""},
        report=REPORT,
        cache_map=CACHE_MAP,
        sources={SourceFile(path="pkg/b.py")},
    )
    assert arguments == (
        "--bazel",
        "--python-version",
        "3.7",
        "--package-root",
        "",
        "--package-root",
        "z_root",
        "--no-error-summary",
        "--incremental",
        "--junit-xml",
        "out/pkg/b-3-7-junit.xml",
        "--cache-map",
        "pkg/b.py",
        "out/pkg/b.3.7.meta.json",
        "out/pkg/b.3.7.data.json",
        "--",
        "pkg/b.py",
    )


def test_mypy_arguments_omit_legacy_python_version() -> None:
    """Omit the version flag for the baseline version."""
    arguments = mypy_arguments(
        python_version="2.7",
        package_roots=(),
        report=REPORT,
        cache_map=(),
        sources=(),
    )
    assert "--python-version" not in arguments
    assert arguments[0] == "--bazel"


def test_mypy_arguments_lead_with_group_descriptors() -> None:
    """Prefix compiled invocations with sorted, semicolon-joined groups."""
    groups = {
        CompiledGroup(name="pkg.z", sources=(SourceFile(path="pkg/z.py"),)),
        CompiledGroup(name="pkg.a", sources=(SourceFile(path="pkg/a.py"),)),
    }
    arguments = mypy_arguments(
        python_version="3.7",
        package_roots=(),
        report=REPORT,
        cache_map=(),
        sources=(),
        groups=groups,
    )
    assert arguments[:4] == ("--mypyc", "pkg.a:pkg/a.py;pkg.z:pkg/z.py", "out", "--bazel")


def test_declare_type_check_inputs_and_param_file() -> None:
    """Read sources, reused caches, plugins and config through a params file."""
    config = CheckgraphConfig(plugins=("plugins/p.py",), mypy_ini="mypy.ini")
    reused = Artifact(root="out", short_path="pkg/c.3.7.meta.json")
    action = declare_type_check(
        Label.parse("//pkg:b"),
        config=config,
        arguments=("--bazel",),
        sources=(SourceFile(path="pkg/b.py"),),
        reused_outputs=(reused,),
        outputs=(REPORT,),
    )
    assert action.mnemonic == "mypy"
    assert action.use_param_file
    assert action.executable == config.mypy
    assert action.inputs == tuple(
        sorted(("pkg/b.py", "out/pkg/c.3.7.meta.json", "plugins/p.py", "mypy.ini"))
    )
    assert action.outputs == ("out/pkg/b-3-7-junit.xml",)
    assert action.progress_message == "Type-checking //pkg:b"
