"""Build plan inspection command."""

from __future__ import annotations

import sys
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import Parameter, validators

from checkgraph.config import load_config
from checkgraph.planning import BuildPlan, plan_manifest
from checkgraph.toolchain import SUPPORTED_VERSIONS
from cli.context import RunContext
from cli.groups import output_group
from serde_msgspec import dumps_json_sorted


@dataclass(frozen=True)
class PlanOptions:
    """CLI options for plan command."""

    target: Annotated[
        tuple[str, ...],
        Parameter(
            name="--target",
            help="Additional target label to evaluate (repeatable).",
            negative=(),
        ),
    ] = ()
    python_version: Annotated[
        tuple[Literal["2.7", "3.7"], ...],
        Parameter(
            name="--python-version",
            help="Python version to evaluate --target at (repeatable, default: both).",
            negative=(),
        ),
    ] = ()
    output_format: Annotated[
        Literal["text", "json"],
        Parameter(
            help="Output format for plan display.",
            env_var="CHECKGRAPH_PLAN_OUTPUT_FORMAT",
            group=output_group,
        ),
    ] = "text"
    output_file: Annotated[
        Path | None,
        Parameter(
            name="-o",
            help="Write plan to file instead of stdout.",
            env_var="CHECKGRAPH_PLAN_OUTPUT_FILE",
            group=output_group,
        ),
    ] = None


_DEFAULT_PLAN_OPTIONS = PlanOptions()


def plan_command(
    manifest: Annotated[
        Path,
        Parameter(validator=validators.Path(exists=True, dir_okay=False)),
    ],
    options: Annotated[PlanOptions, Parameter(name="*")] = _DEFAULT_PLAN_OPTIONS,
    *,
    run_context: Annotated[RunContext | None, Parameter(parse=False)] = None,
) -> int:
    """Evaluate a build manifest and show the declared actions.

    Returns
    -------
    int
        Exit status code.
    """
    config = run_context.config if run_context is not None else load_config()
    plan = plan_manifest(
        manifest,
        config=config,
        targets=options.target,
        python_versions=options.python_version or SUPPORTED_VERSIONS,
    )
    if options.output_format == "json":
        encoded = dumps_json_sorted(plan.payload(), pretty=True).decode("utf-8")
        _write_text(encoded, options.output_file)
        return 0
    _write_text(_format_text(plan), options.output_file)
    return 0


def _format_text(plan: BuildPlan) -> str:
    payload = plan.payload()
    lines = [
        f"config_fingerprint: {payload.get('config_fingerprint')}",
        f"node_count: {len(plan.walker.analyses())}",
        f"action_count: {plan.action_graph.graph.num_nodes()}",
        f"generation_count: {len(plan.action_graph.generations())}",
    ]
    lines.extend(_format_section("check_tests", payload.get("check_tests")))
    lines.extend(_format_section("compiled_binaries", payload.get("compiled_binaries")))
    return "\n".join(lines)


def _format_section(title: str, entries: object) -> list[str]:
    if not isinstance(entries, list) or not entries:
        return [f"{title}: (none)"]
    lines = [f"{title}:"]
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        version = entry.get("python_version")
        suffix = f" (python {version})" if version is not None else ""
        lines.append(f"  {entry.get('label')}{suffix}")
    return lines


def _write_text(payload: str, output_file: Path | None) -> None:
    if output_file is None:
        sys.stdout.write(payload + "\n")
        return
    output_file.write_text(payload + "\n", encoding="utf-8")


__all__ = ["plan_command"]
