"""Tests for JUnit report parsing, merging and rendering."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from checkgraph.errors import CheckgraphReportError
from checkgraph.reports import (
    CaseResult,
    VerificationResult,
    merge_cases,
    parse_report,
    render_junit,
    verify_reports,
)

_REPORT = """<?xml version="1.0" encoding="utf-8"?>
<testsuite name="mypy" tests="2" failures="1">
  <testcase classname="mypy" name="pkg/a.py"/>
  <testcase classname="mypy" name="pkg/b.py">
    <failure message="incompatible types">pkg/b.py:3: error: incompatible types</failure>
  </testcase>
</testsuite>
"""


def test_parse_report(tmp_path: Path) -> None:
    """Read one case per testcase element."""
    path = tmp_path / "a-3-7-junit.xml"
    path.write_text(_REPORT, encoding="utf-8")
    cases = parse_report(path)
    assert cases == (
        CaseResult(name="pkg/a.py"),
        CaseResult(name="pkg/b.py", failed=True, message="incompatible types"),
    )


def test_parse_report_rejects_malformed_xml(tmp_path: Path) -> None:
    """Raise a report error for unparsable documents."""
    path = tmp_path / "bad.xml"
    path.write_text("<testsuite>", encoding="utf-8")
    with pytest.raises(CheckgraphReportError, match="Failed to read report"):
        parse_report(path)


def test_merge_cases_failure_wins() -> None:
    """Fail a case when any report fails it."""
    merged = merge_cases(
        [
            (CaseResult(name="b.py"), CaseResult(name="a.py")),
            (CaseResult(name="b.py", failed=True, message="boom"),),
            (CaseResult(name="b.py"),),
        ]
    )
    assert merged == (
        CaseResult(name="a.py"),
        CaseResult(name="b.py", failed=True, message="boom"),
    )


def test_render_junit_counts_failures() -> None:
    """Render one suite with failure counts and failure elements."""
    result = VerificationResult(
        label="//pkg:check",
        cases=(CaseResult(name="a.py"), CaseResult(name="b.py", failed=True, message="boom")),
    )
    suite = ET.fromstring(render_junit(result))
    assert suite.get("name") == "//pkg:check"
    assert suite.get("tests") == "2"
    assert suite.get("failures") == "1"
    failures = suite.findall("testcase/failure")
    assert [failure.get("message") for failure in failures] == ["boom"]


def test_verify_reports_passes_without_failures(tmp_path: Path) -> None:
    """Pass when no report contains a failure."""
    path = tmp_path / "ok.xml"
    path.write_text('<testsuite><testcase name="a.py"/></testsuite>', encoding="utf-8")
    result = verify_reports("//pkg:check", [path])
    assert result.passed
    assert result.failures == ()


def test_verify_reports_without_reports_passes() -> None:
    """Pass trivially when nothing was checked."""
    assert verify_reports("//pkg:check", []).passed
