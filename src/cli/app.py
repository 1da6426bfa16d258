"""Main application setup for the checkgraph CLI."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Literal

from cyclopts import App, Parameter
from cyclopts.config import Toml

from checkgraph.config import CLI_DEFAULTS_KEY, CONFIG_FILENAME, load_config
from cli.commands.version import get_version
from cli.context import RunContext
from cli.groups import session_group
from cli.telemetry import invoke_command
from obs.otel import LOG_LEVELS, configure_logging

_HELP_EPILOGUE = """
Examples:
  checkgraph plan graph.toml                     Plan every check test in a manifest
  checkgraph plan graph.toml --target //pkg:lib  Plan one target at both versions
  checkgraph verify --label //pkg:lib_mypy a.xml b.xml
                                                 Aggregate JUnit reports for a check test

Environment Variables:
  CHECKGRAPH_LOG_LEVEL    Default log level (DEBUG, INFO, WARNING, ERROR)
  CHECKGRAPH_OUTPUT_ROOT  Root directory for declared outputs
"""

app = App(
    name="checkgraph",
    help="Plan mypy type-check and mypyc compilation actions over a build graph.",
    help_epilogue=_HELP_EPILOGUE,
    version=get_version(),
    version_flags=["--version", "-V"],
    default_parameter=Parameter(
        show_default=True,
        show_env_var=True,
    ),
    config=[
        Toml(
            CONFIG_FILENAME,
            root_keys=(CLI_DEFAULTS_KEY,),
            must_exist=False,
            search_parents=True,
        ),
        Toml(
            "pyproject.toml",
            root_keys=("tool", "checkgraph", CLI_DEFAULTS_KEY),
            must_exist=False,
            search_parents=True,
        ),
    ],
    exit_on_error=True,
    print_error=True,
    help_on_error=False,
)

app.meta.group_parameters = session_group


@dataclass(frozen=True)
class SessionOptions:
    """Session-level configuration parameters."""

    config_file: Annotated[
        str | None,
        Parameter(
            name="--config",
            help="Path to configuration file (overrides default search).",
            group=session_group,
        ),
    ] = None
    log_level: Annotated[
        Literal["DEBUG", "INFO", "WARNING", "ERROR"],
        Parameter(
            name="--log-level",
            help="Logging verbosity level.",
            env_var="CHECKGRAPH_LOG_LEVEL",
            group=session_group,
        ),
    ] = "INFO"


_DEFAULT_SESSION_OPTIONS = SessionOptions()


@app.meta.default
def meta_launcher(
    *tokens: Annotated[str, Parameter(show=False, allow_leading_hyphen=True)],
    session: Annotated[SessionOptions, Parameter(name="*")] = _DEFAULT_SESSION_OPTIONS,
) -> int:
    """Meta launcher for config selection and context injection.

    Returns
    -------
    int
        Exit status code from command execution.

    Raises
    ------
    ValueError
        Raised when the log level or config path is invalid.
    """
    if session.log_level not in LOG_LEVELS:
        msg = f"Unsupported log level {session.log_level!r}."
        raise ValueError(msg)
    logging.basicConfig(level=session.log_level)
    configure_logging(session.log_level)

    if session.config_file is not None and not Path(session.config_file).exists():
        msg = f"Config file not found: {session.config_file!r}."
        raise ValueError(msg)

    run_context = RunContext(
        log_level=session.log_level,
        config=load_config(session.config_file),
    )
    return invoke_command(app, tokens, run_context=run_context)


# Lazy-loaded commands with aliases
app.command("cli.commands.plan:plan_command", name="plan", alias="p")
app.command("cli.commands.verify:verify_command", name="verify")
app.command("cli.commands.version:version_command", name="version", alias="v")


def main() -> None:
    """Run the checkgraph CLI."""
    sys.exit(app.meta())


__all__ = ["app", "main"]
