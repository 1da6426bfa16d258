"""Tests for the memoized graph walk and the state it folds."""

from __future__ import annotations

from checkgraph.actions import RunAction
from checkgraph.artifacts import SourceFile
from checkgraph.config import CheckgraphConfig
from checkgraph.nodes import ForeignNode, MypyBootstrap, ServicesInternalTest
from checkgraph.state import EMPTY_STATE
from tests.test_helpers.graphs import OUTPUT_ROOT, library, native_config, walker_for


def _type_checks(actions: object) -> list[RunAction]:
    return [
        action
        for action in actions  # type: ignore[attr-defined]
        if isinstance(action, RunAction) and action.mnemonic == "mypy"
    ]


def test_dependency_state_flows_upward() -> None:
    """Fold the dependency's sources, reports and cache entries into the node."""
    walker = walker_for(
        [library("//pkg:a", ["pkg/a.py"], deps=["//pkg:b"]), library("//pkg:b", ["pkg/b.py"])]
    )
    state = walker.state_for("//pkg:a", "3.7")
    assert {src.path for src in state.sources} == {"pkg/a.py", "pkg/b.py"}
    assert {report.path for report in state.reports} == {
        f"{OUTPUT_ROOT}/pkg/a-3-7-junit.xml",
        f"{OUTPUT_ROOT}/pkg/b-3-7-junit.xml",
    }
    assert [entry.source.path for entry in state.cache_map] == ["pkg/b.py", "pkg/a.py"]


def test_state_is_independent_of_dependency_order() -> None:
    """Produce equal set-valued state for shuffled dependency declarations."""
    leaves = [library("//pkg:x", ["pkg/x.py"]), library("//pkg:y", ["pkg/y.py"])]
    forward = walker_for([library("//pkg:top", deps=["//pkg:x", "//pkg:y"]), *leaves])
    backward = walker_for([library("//pkg:top", deps=["//pkg:y", "//pkg:x"]), *leaves])
    left = forward.state_for("//pkg:top", "2.7")
    right = backward.state_for("//pkg:top", "2.7")
    assert left.sources == right.sources
    assert left.package_roots == right.package_roots
    assert left.generated_outputs == right.generated_outputs
    assert left.reports == right.reports
    assert {entry.source for entry in left.cache_map} == {
        entry.source for entry in right.cache_map
    }


def test_diamond_declares_each_action_once() -> None:
    """Analyze a shared dependency once even when reached twice."""
    walker = walker_for(
        [
            library("//pkg:d", ["pkg/d.py"], deps=["//pkg:b", "//pkg:c"]),
            library("//pkg:b", ["pkg/b.py"], deps=["//pkg:a"]),
            library("//pkg:c", ["pkg/c.py"], deps=["//pkg:a"]),
            library("//pkg:a", ["pkg/a.py"]),
        ]
    )
    walker.evaluate(["//pkg:d", "//pkg:b"], "3.7")
    walker.evaluate(["//pkg:d"], "3.7")
    owners = [action.owner for action in _type_checks(walker.declared_actions())]
    assert sorted(owners) == ["//pkg:a", "//pkg:b", "//pkg:c", "//pkg:d"]


def test_node_without_sources_is_a_no_op() -> None:
    """Return the empty state and declare nothing for source-free subgraphs."""
    walker = walker_for([library("//pkg:empty", deps=["//pkg:inner"]), library("//pkg:inner")])
    assert walker.state_for("//pkg:empty", "3.7") == EMPTY_STATE
    assert walker.declared_actions() == ()


def test_foreign_node_contributes_empty_state() -> None:
    """Skip node kinds the walker does not understand."""
    walker = walker_for(
        [
            library("//pkg:a", ["pkg/a.py"], deps=["//third_party:proto"]),
            ForeignNode(label="//third_party:proto", kind="proto_library"),
        ]
    )
    assert walker.state_for("//third_party:proto", "3.7") == EMPTY_STATE
    assert {src.path for src in walker.state_for("//pkg:a", "3.7").sources} == {"pkg/a.py"}


def test_bootstrap_is_pinned_to_its_own_version() -> None:
    """Evaluate a stub bootstrap at its declared version only."""
    config = native_config(typeshed={"3.7": "//typeshed:py3"})
    walker = walker_for(
        [
            library("//pkg:a", ["pkg/a.py"]),
            MypyBootstrap(
                label="//typeshed:py3",
                stub_srcs=(SourceFile(path="typeshed/stdlib/3/os.pyi"),),
                python_version="2.7",
            ),
        ],
        config,
    )
    walker.state_for("//pkg:a", "3.7")
    keys = {(analysis.label, analysis.python_version) for analysis in walker.analyses()}
    assert keys == {("//pkg:a", "3.7"), ("//typeshed:py3", "2.7")}


def test_typeshed_bootstrap_is_an_implicit_dependency() -> None:
    """Add the configured bootstrap and its stub roots to invoking nodes."""
    config = native_config(typeshed={"3.7": "//typeshed:py3"})
    walker = walker_for(
        [
            library("//pkg:a", ["pkg/a.py"]),
            MypyBootstrap(
                label="//typeshed:py3",
                stub_srcs=(SourceFile(path="typeshed/stdlib/3/os.pyi"),),
                python_version="3.7",
            ),
        ],
        config,
    )
    state = walker.state_for("//pkg:a", "3.7")
    assert "typeshed/stdlib/3" in state.package_roots
    assert "typeshed/stdlib/3/os.pyi" in {src.path for src in state.sources}
    legacy = walker.state_for("//pkg:a", "2.7")
    assert "typeshed/stdlib/3" not in legacy.package_roots


def test_wrapped_binary_takes_binary_state() -> None:
    """Rewrite the wrapper to depend on its single binary."""
    walker = walker_for(
        [
            ServicesInternalTest(label="//svc:test", bin="//svc:bin"),
            library("//svc:bin", ["svc/main.py"], extra_pythonpath=["svc/vendor"]),
        ]
    )
    wrapper = walker.state_for("//svc:test", "3.7")
    binary = walker.state_for("//svc:bin", "3.7")
    assert wrapper.sources == binary.sources
    assert "svc/vendor" in wrapper.package_roots
    assert binary.reports < wrapper.reports


def test_compiled_library_skips_native_build_at_legacy_version() -> None:
    """Type-check but never compile at the baseline version."""
    walker = walker_for([library("//pkg:c", ["pkg/m1.py"], compiled=True)])
    state = walker.state_for("//pkg:c", "2.7")
    assert state.compiled_groups == frozenset()
    assert state.extension_modules == frozenset()
    assert state.native_context is None
    assert not any(artifact.path.endswith(".ir.json") for artifact in state.generated_outputs)
    assert [action.mnemonic for action in walker.declared_actions()] == ["mypy"]


def test_compiled_library_declares_group_at_py3() -> None:
    """Declare groups, extension modules and the IR file at Python 3."""
    walker = walker_for([library("//pkg:c", ["pkg/m1.py"], compiled=True)])
    state = walker.state_for("//pkg:c", "3.7")
    assert [group.descriptor() for group in state.compiled_groups] == ["pkg.c:pkg/m1.py"]
    assert f"{OUTPUT_ROOT}/pkg/m1.3.7.ir.json" in {
        artifact.path for artifact in state.generated_outputs
    }
    assert f"{OUTPUT_ROOT}/pkg/__native_c.c" in {
        artifact.path for artifact in state.generated_outputs
    }
    (type_check,) = _type_checks(walker.declared_actions())
    assert type_check.arguments[:2] == ("--mypyc", "pkg.c:pkg/m1.py")


def test_group_descriptor_includes_transitive_groups() -> None:
    """Pass every reachable group to a compiled node's invocation."""
    walker = walker_for(
        [
            library("//pkg:a", ["pkg/a.py"], deps=["//pkg:c"], compiled=True),
            library("//pkg:c", ["pkg/c.py"], compiled=True),
        ]
    )
    walker.state_for("//pkg:a", "3.7")
    by_owner = {action.owner: action for action in _type_checks(walker.declared_actions())}
    assert by_owner["//pkg:a"].arguments[1] == "pkg.a:pkg/a.py;pkg.c:pkg/c.py"


def test_native_context_is_forwarded_through_plain_nodes() -> None:
    """Forward the merged context from a compiled dependency unchanged."""
    walker = walker_for(
        [
            library("//pkg:b", ["pkg/b.py"], deps=["//pkg:c"]),
            library("//pkg:c", ["pkg/c.py"], compiled=True),
        ]
    )
    compiled = walker.state_for("//pkg:c", "3.7")
    plain = walker.state_for("//pkg:b", "3.7")
    assert compiled.native_context is not None
    assert plain.native_context == compiled.native_context


def test_action_graph_orders_dependency_check_first() -> None:
    """Run a dependency's type check in an earlier generation."""
    walker = walker_for(
        [library("//pkg:a", ["pkg/a.py"], deps=["//pkg:b"]), library("//pkg:b", ["pkg/b.py"])]
    )
    walker.state_for("//pkg:a", "3.7")
    generations = walker.action_graph().generations()
    owners = [[action.owner for action in generation] for generation in generations]
    assert owners == [["//pkg:b"], ["//pkg:a"]]


def test_walker_exposes_config() -> None:
    """Expose the configuration the walker was built with."""
    config = CheckgraphConfig()
    walker = walker_for([library("//pkg:a", ["pkg/a.py"])], config)
    assert walker.config is config
