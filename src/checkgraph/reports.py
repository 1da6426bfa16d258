"""JUnit report parsing and reduction to one pass/fail outcome."""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import Iterable, Sequence
from pathlib import Path

from checkgraph.errors import CheckgraphReportError
from obs.otel import SCOPE_VERIFY, stage_span
from serde_msgspec import StructBaseStrict

logger = logging.getLogger(__name__)

_FAILURE_TAGS = ("failure", "error")


class CaseResult(StructBaseStrict, frozen=True):
    """Outcome of checking one file."""

    name: str
    failed: bool = False
    message: str | None = None


class VerificationResult(StructBaseStrict, frozen=True):
    """Merged outcome of every report reachable from a check test."""

    label: str
    cases: tuple[CaseResult, ...] = ()

    @property
    def failures(self) -> tuple[CaseResult, ...]:
        """Return the failing cases."""
        return tuple(case for case in self.cases if case.failed)

    @property
    def passed(self) -> bool:
        """Return True when no case failed."""
        return not self.failures


def _case_from_element(element: ET.Element) -> CaseResult:
    name = element.get("name") or element.get("classname") or ""
    for tag in _FAILURE_TAGS:
        child = element.find(tag)
        if child is not None:
            message = child.get("message") or (child.text or "").strip() or None
            return CaseResult(name=name, failed=True, message=message)
    return CaseResult(name=name)


def parse_report(path: Path) -> tuple[CaseResult, ...]:
    """Parse one JUnit report.

    Returns
    -------
    tuple[CaseResult, ...]
        One result per ``testcase`` element, in document order.

    Raises
    ------
    CheckgraphReportError
        Raised when the report cannot be read or parsed.
    """
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as exc:
        msg = f"Failed to read report {str(path)!r}: {exc}"
        raise CheckgraphReportError(msg) from exc
    return tuple(_case_from_element(element) for element in root.iter("testcase"))


def merge_cases(reports: Iterable[Sequence[CaseResult]]) -> tuple[CaseResult, ...]:
    """Merge cases by name; a case fails when any report fails it.

    Returns
    -------
    tuple[CaseResult, ...]
        Deduplicated cases sorted by name.
    """
    merged: dict[str, CaseResult] = {}
    for cases in reports:
        for case in cases:
            existing = merged.get(case.name)
            if existing is None or (case.failed and not existing.failed):
                merged[case.name] = case
    return tuple(merged[name] for name in sorted(merged))


def render_junit(result: VerificationResult) -> bytes:
    """Render a merged result as one JUnit document.

    Returns
    -------
    bytes
        UTF-8 encoded XML.
    """
    suite = ET.Element(
        "testsuite",
        {
            "name": result.label,
            "tests": str(len(result.cases)),
            "failures": str(len(result.failures)),
            "errors": "0",
            "skipped": "0",
        },
    )
    for case in result.cases:
        element = ET.SubElement(suite, "testcase", {"classname": "mypy", "name": case.name})
        if case.failed:
            failure = ET.SubElement(element, "failure", {"message": case.message or "failed"})
            failure.text = case.message
    return ET.tostring(suite, encoding="utf-8", xml_declaration=True)


def verify_reports(label: str, paths: Sequence[Path]) -> VerificationResult:
    """Read reports and reduce them to one result.

    Returns
    -------
    VerificationResult
        Merged result for ``label``.
    """
    with stage_span(
        "checkgraph.verify",
        stage="verify",
        scope_name=SCOPE_VERIFY,
        attributes={"checkgraph.label": label, "checkgraph.report_count": len(paths)},
    ) as span:
        result = VerificationResult(
            label=label,
            cases=merge_cases(parse_report(path) for path in paths),
        )
        span.set_attribute("checkgraph.failures", len(result.failures))
    if result.passed:
        logger.info("%s: %d files checked, no failures.", label, len(result.cases))
    else:
        logger.info(
            "%s: %d of %d files failed.", label, len(result.failures), len(result.cases)
        )
    return result


__all__ = [
    "CaseResult",
    "VerificationResult",
    "merge_cases",
    "parse_report",
    "render_junit",
    "verify_reports",
]
