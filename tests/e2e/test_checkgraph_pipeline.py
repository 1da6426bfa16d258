"""End-to-end planning and verification over small build graphs."""

from __future__ import annotations

from pathlib import Path

from checkgraph.actions import CcLinkAction, ExpandTemplateAction, RunAction
from checkgraph.nodes import PyCompiledBinary
from checkgraph.planning import CheckTestSpec, plan_build
from checkgraph.reports import verify_reports
from tests.test_helpers.graphs import OUTPUT_ROOT, library, native_config

SO = "cpython-37m-x86_64-linux-gnu.so"


def _junit(cases: dict[str, str | None]) -> str:
    body = []
    for name, error in cases.items():
        if error is None:
            body.append(f'<testcase classname="mypy" name="{name}"/>')
        else:
            body.append(
                f'<testcase classname="mypy" name="{name}">'
                f'<failure message="{error}">{name}: error: {error}</failure></testcase>'
            )
    return f'<testsuite name="mypy">{"".join(body)}</testsuite>'


def test_type_error_in_dependency_fails_check_test(tmp_path: Path) -> None:
    """Attribute a dependency's type error to the dependency's report."""
    plan = plan_build(
        [library("//pkg:a", ["pkg/a.py"], deps=["//pkg:b"]), library("//pkg:b", ["pkg/b.py"])],
        config=native_config(),
        check_tests=[
            CheckTestSpec(label="//pkg:check", deps=("//pkg:a",), python2_compatible=False)
        ],
    )
    (check_test,) = plan.check_tests
    assert check_test.runfiles == (
        f"{OUTPUT_ROOT}/pkg/a-3-7-junit.xml",
        f"{OUTPUT_ROOT}/pkg/b-3-7-junit.xml",
    )

    # Write what the two type checks would have produced.
    outcomes = {
        "a-3-7-junit.xml": {"pkg/a.py": None},
        "b-3-7-junit.xml": {"pkg/b.py": "Incompatible return value type"},
    }
    paths = []
    for name, cases in outcomes.items():
        path = tmp_path / name
        path.write_text(_junit(cases), encoding="utf-8")
        paths.append(path)

    result = verify_reports(check_test.target.label, paths)
    assert not result.passed
    assert [case.name for case in result.failures] == ["pkg/b.py"]
    assert [case.name for case in result.cases] == ["pkg/a.py", "pkg/b.py"]


def test_compiled_library_builds_group_and_shims() -> None:
    """Build one group library and one shim per module, each linked to the group."""
    plan = plan_build(
        [
            library("//pkg:c", ["pkg/m1.py", "pkg/n1.py"], compiled=True),
            PyCompiledBinary(label="//pkg:bin", deps=("//pkg:c",), python2_compatible=False),
        ],
        config=native_config(),
    )
    actions = plan.action_graph.actions()
    group_library = f"{OUTPUT_ROOT}/pkg/c__mypyc.{SO}"
    copies = [action for action in actions if action.mnemonic == "CopyExtension"]
    assert sorted(output for action in copies for output in action.outputs) == [
        group_library,
        f"{OUTPUT_ROOT}/pkg/m1.{SO}",
        f"{OUTPUT_ROOT}/pkg/n1.{SO}",
    ]
    shims = [action for action in actions if isinstance(action, ExpandTemplateAction)]
    assert len(shims) == 2
    shim_links = [
        action
        for action in actions
        if isinstance(action, CcLinkAction) and group_library in action.inputs
    ]
    assert len(shim_links) == 2

    (binary,) = plan.compiled_binaries
    assert [artifact.path for artifact in binary.extension_modules] == [
        group_library,
        f"{OUTPUT_ROOT}/pkg/m1.{SO}",
        f"{OUTPUT_ROOT}/pkg/n1.{SO}",
    ]

    # The group sources are generated by the type check before compilation.
    (type_check,) = [
        action
        for action in actions
        if isinstance(action, RunAction) and action.mnemonic == "mypy"
    ]
    generations = plan.action_graph.generations()
    assert type_check in generations[0]
    assert all(
        action.mnemonic in {"mypy", "ExpandTemplate"} for action in generations[0]
    )
    assert type_check.arguments[:3] == ("--mypyc", "pkg.c:pkg/m1.py,pkg/n1.py", OUTPUT_ROOT)
