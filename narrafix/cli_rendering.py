"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
per-message formatting summaries, and security findings.
"""

from __future__ import annotations

from typing import NoReturn

import typer

from .errors import FormatStageError
from .models.datatypes import MessageResult, SecurityViolation


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, FormatStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def echo_violations(violations: tuple[SecurityViolation, ...]) -> None:
    """Print one row per security finding."""

    for violation in violations:
        typer.echo(
            f"  [{violation.severity}] {violation.type} {violation.node} "
            f"at {violation.position.row}:{violation.position.col}: {violation.message}"
        )


def echo_message_results(results: list[MessageResult]) -> None:
    """Print a status row per message and a closing totals row."""

    for result in results:
        status = "changed" if result.changed else "unchanged"
        typer.echo(f"Message {result.message_id}: {status}")
        if result.rendered is not None:
            typer.echo(f"  Approved scripts: {len(result.rendered.executable_scripts)}")
            echo_violations(result.rendered.violations)

    changed_count = sum(1 for result in results if result.changed)
    typer.echo(f"Formatted messages: {len(results)} (changed: {changed_count})")
