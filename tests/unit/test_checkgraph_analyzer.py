"""Tests for stub precedence and package-root computation."""

from __future__ import annotations

from checkgraph.analyzer import (
    analyze_node,
    own_package_roots,
    resolve_own_sources,
    stub_tree_roots,
)
from checkgraph.artifacts import SourceFile
from checkgraph.nodes import NodeInputs
from checkgraph.state import NodeState


def test_stub_overrides_plain_source() -> None:
    """Drop a plain source when its stub is declared alongside it."""
    srcs = (SourceFile(path="pkg/a.py"), SourceFile(path="pkg/b.py"))
    stubs = (SourceFile(path="pkg/a.pyi"),)
    resolved = resolve_own_sources(srcs, stubs)
    assert [src.path for src in resolved] == ["pkg/b.py", "pkg/a.pyi"]


def test_stub_without_plain_counterpart_is_kept() -> None:
    """Keep stubs that do not shadow any plain source."""
    resolved = resolve_own_sources((SourceFile(path="a.py"),), (SourceFile(path="b.pyi"),))
    assert [src.path for src in resolved] == ["a.py", "b.pyi"]


def test_stub_tree_roots_end_at_version_directory() -> None:
    """Synthesize roots up to the first digit-leading path segment."""
    stubs = (
        SourceFile(path="typeshed/stdlib/2and3/os/__init__.pyi"),
        SourceFile(path="typeshed/third_party/3.7/attr/__init__.pyi"),
        SourceFile(path="stubs/plain/module.pyi"),
    )
    assert stub_tree_roots(stubs) == (
        "typeshed/stdlib/2and3",
        "typeshed/third_party/3.7",
    )


def test_invoking_node_adds_extra_pythonpath() -> None:
    """Add extra import roots only for nodes with a source target."""
    own = (SourceFile(path="gen/pkg/a.py", root="gen"),)
    inputs = NodeInputs(label="//pkg:a", srcs=own, extra_pythonpath=("vendor",))
    assert own_package_roots(inputs, own) == ("gen", "vendor")


def test_bootstrap_node_adds_stub_roots_but_not_extra_pythonpath() -> None:
    """Synthesize stub roots for non-invoking nodes."""
    stubs = (SourceFile(path="typeshed/stdlib/3/os.pyi"),)
    inputs = NodeInputs(
        label="//typeshed:stubs",
        stub_srcs=stubs,
        extra_pythonpath=("ignored",),
        invoking=False,
    )
    roots = own_package_roots(inputs, stubs)
    assert "typeshed/stdlib/3" in roots
    assert "ignored" not in roots


def test_analyze_node_unions_dependency_state() -> None:
    """Union own sources and roots with those of every dependency."""
    dep = NodeState(
        sources=frozenset({SourceFile(path="pkg/b.py")}),
        package_roots=frozenset({"", "dep_root"}),
    )
    inputs = NodeInputs(label="//pkg:a", srcs=(SourceFile(path="pkg/a.py"),))
    analyzed = analyze_node(inputs, [dep, dep])
    assert analyzed.own_sources == (SourceFile(path="pkg/a.py"),)
    assert {src.path for src in analyzed.sources} == {"pkg/a.py", "pkg/b.py"}
    assert analyzed.package_roots == frozenset({"", "dep_root"})


def test_analyze_node_without_sources_is_empty() -> None:
    """Report an empty analysis when nothing is reachable."""
    analyzed = analyze_node(NodeInputs(label="//pkg:empty"), [])
    assert analyzed.is_empty
