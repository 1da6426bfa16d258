"""Command dispatch with span capture and exit-code mapping."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from cyclopts import App, CycloptsError

from cli.context import RunContext
from cli.exit_codes import ExitCode
from obs.otel import SCOPE_CLI, set_span_attributes, stage_span

_LOGGER = logging.getLogger(__name__)


def _command_name_from_tokens(tokens: Sequence[str]) -> str:
    for token in tokens:
        if not token.startswith("-"):
            return token
    return "checkgraph"


def _exit_code_from_result(result: object) -> int:
    if isinstance(result, bool):
        return int(not result)
    if isinstance(result, int):
        return result
    return ExitCode.SUCCESS


def invoke_command(
    app: App,
    tokens: Sequence[str],
    *,
    run_context: RunContext | None,
) -> int:
    """Parse ``tokens`` and run the selected command inside a CLI span.

    The run context is injected into any command parameter cyclopts left
    unparsed under the ``run_context`` name.

    Returns
    -------
    int
        Exit status code.
    """
    normalized = list(tokens)
    command_name = _command_name_from_tokens(normalized)
    try:
        with stage_span(
            "checkgraph.cli.command",
            stage="cli",
            scope_name=SCOPE_CLI,
            attributes={"cli.command": command_name, "cli.tokens": len(normalized)},
        ) as span:
            command, bound, ignored = app.parse_args(
                normalized,
                exit_on_error=False,
                print_error=True,
            )
            if run_context is not None and ignored:
                for name, hint in ignored.items():
                    if hint is RunContext or name == "run_context":
                        bound.arguments[name] = run_context
            result = command(*bound.args, **bound.kwargs)
            exit_code = _exit_code_from_result(result)
            set_span_attributes(span, {"cli.exit_code": exit_code})
    except CycloptsError as exc:
        return ExitCode.from_exception(exc)
    except Exception as exc:
        exit_code = ExitCode.from_exception(exc)
        if exit_code == ExitCode.GENERAL_ERROR:
            _LOGGER.exception("Command execution failed.")
        else:
            _LOGGER.error("%s", exc)  # noqa: TRY400
        return exit_code
    return exit_code


__all__ = ["invoke_command"]
