"""Unit tests for CLI output and error rendering helpers."""

from __future__ import annotations

import pytest
import typer

from narrafix.cli_rendering import echo_message_results, exit_with_command_error
from narrafix.errors import FormatStageError
from narrafix.models.datatypes import (
    MessageResult,
    SanitizedHtml,
    SecurityViolation,
    ViolationPosition,
)


def test_exit_with_command_error_renders_stage_error_with_hint(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print stage diagnostics and hint before exiting with code 1."""

    error = FormatStageError(
        stage="config",
        detail="Config file not found: `missing.yaml`.",
        hint="Provide an existing path via `--config <path.yaml>`.",
    )

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("fix-chat", error)

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "fix-chat failed at stage `config`" in captured.err
    assert "Hint: Provide an existing path via `--config <path.yaml>`." in captured.err


def test_exit_with_command_error_renders_non_stage_fallback(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Renderer should print fallback exception text for non-stage failures."""

    with pytest.raises(typer.Exit) as exc_info:
        exit_with_command_error("render", RuntimeError("unexpected render error"))

    captured = capsys.readouterr()
    assert exc_info.value.exit_code == 1
    assert "render failed: unexpected render error" in captured.err


def test_echo_message_results_prints_status_violations_and_totals(
    capsys: pytest.CaptureFixture[str],
) -> None:
    """Summary should list each message, its findings, and the totals row."""

    violation = SecurityViolation(
        type="inline_event_handler:onclick",
        node="<button>",
        position=ViolationPosition(row=1, col=3),
        severity="warning",
        message="Sanitized onclick event handler: rewritten",
    )
    results = [
        MessageResult(message_id=0, original_text="a", text="*a*", changed=True),
        MessageResult(
            message_id=1,
            original_text="*b*",
            text="*b*",
            changed=False,
            rendered=SanitizedHtml(
                html="<em>b</em>",
                executable_scripts=("x()",),
                violations=(violation,),
            ),
        ),
    ]

    echo_message_results(results)

    lines = capsys.readouterr().out.splitlines()
    assert lines == [
        "Message 0: changed",
        "Message 1: unchanged",
        "  Approved scripts: 1",
        "  [warning] inline_event_handler:onclick <button> at 1:3: "
        "Sanitized onclick event handler: rewritten",
        "Formatted messages: 2 (changed: 1)",
    ]
