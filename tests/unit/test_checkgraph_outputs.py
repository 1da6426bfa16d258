"""Tests for per-source cache artifact declaration."""

from __future__ import annotations

from checkgraph.artifacts import SourceFile
from checkgraph.outputs import cache_file_name, cache_map_arguments, declare_source_outputs


def test_cache_file_name_is_relative_to_source_root() -> None:
    """Name cache files after the root-relative path without extension."""
    generated = SourceFile(path="bazel-out/bin/gen/x.py", root="bazel-out/bin")
    assert cache_file_name(generated, "3.7", "meta") == "gen/x.3.7.meta.json"
    assert cache_file_name(SourceFile(path="pkg/a.pyi"), "2.7", "data") == "pkg/a.2.7.data.json"


def test_declare_source_outputs_without_compilation() -> None:
    """Declare meta and data files only when not compiling."""
    outputs = declare_source_outputs(
        SourceFile(path="pkg/a.py"),
        python_version="2.7",
        compiled=False,
        output_root="out",
    )
    assert outputs.ir is None
    assert [artifact.path for artifact in outputs.all_outputs()] == [
        "out/pkg/a.2.7.meta.json",
        "out/pkg/a.2.7.data.json",
    ]


def test_ir_file_is_excluded_from_cache_map() -> None:
    """Declare the IR file for compiled sources but keep it out of the cache map."""
    outputs = declare_source_outputs(
        SourceFile(path="pkg/a.py"),
        python_version="3.7",
        compiled=True,
        output_root="out",
    )
    assert outputs.ir is not None
    assert outputs.ir.path == "out/pkg/a.3.7.ir.json"
    assert cache_map_arguments([outputs.cache_entry()]) == (
        "pkg/a.py",
        "out/pkg/a.3.7.meta.json",
        "out/pkg/a.3.7.data.json",
    )
