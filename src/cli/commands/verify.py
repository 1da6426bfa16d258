"""JUnit report aggregation command used by check test runners."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

from cyclopts import Parameter

from checkgraph.reports import render_junit, verify_reports
from cli.exit_codes import ExitCode


def verify_command(
    reports: Annotated[
        tuple[Path, ...],
        Parameter(help="JUnit XML reports produced by the type-check actions."),
    ] = (),
    *,
    label: Annotated[
        str,
        Parameter(name="--label", help="Label of the check test being verified."),
    ],
) -> int:
    """Merge mypy JUnit reports and write the aggregate to stdout.

    Returns
    -------
    int
        ``ExitCode.SUCCESS`` when no file failed, which includes an empty
        report set, otherwise ``ExitCode.CHECK_FAILED``.
    """
    result = verify_reports(label, reports)
    sys.stdout.write(render_junit(result).decode("utf-8"))
    return ExitCode.SUCCESS if result.passed else ExitCode.CHECK_FAILED


__all__ = ["verify_command"]
