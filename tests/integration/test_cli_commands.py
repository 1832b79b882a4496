"""Integration tests for Narrafix CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from narrafix.cli import app
from narrafix.cli_runtime import CredentialStoreProtocol


def _write_chat(path: Path, messages: list[dict[str, object]]) -> Path:
    """Write a JSONL chat file with a metadata header line."""

    lines = [json.dumps({"user_name": "You", "character_name": "Alice"})]
    lines.extend(json.dumps(message, ensure_ascii=False) for message in messages)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def _read_messages(path: Path) -> list[str]:
    """Return the `mes` field of every message line in a chat file."""

    lines = path.read_text(encoding="utf-8").splitlines()[1:]
    return [json.loads(line)["mes"] for line in lines]


def _sample_chat(tmp_path: Path) -> Path:
    """Write a two-message chat used by `fix-chat` tests."""

    return _write_chat(
        tmp_path / "chat.jsonl",
        [
            {"name": "You", "is_user": True, "mes": "I wave. *\"Hi!\"*"},
            {"name": "Alice", "is_user": False, "mes": 'Alice: She smiled. "Hello."'},
        ],
    )


def test_normalize_command_reads_file_and_strips_speaker(tmp_path: Path) -> None:
    """Normalize should print the normalized file text without a trailing newline."""

    source = tmp_path / "message.txt"
    source.write_text("Alice: *Hello* there!", encoding="utf-8")

    result = CliRunner().invoke(app, ["normalize", str(source), "--speaker", "Alice"])

    assert result.exit_code == 0, result.output
    assert result.stdout == "*Hello there!*"


def test_normalize_command_reads_stdin() -> None:
    """A `-` source should read message text from stdin."""

    result = CliRunner().invoke(app, ["normalize", "-"], input='She smiled. "Hi."\n')

    assert result.exit_code == 0, result.output
    assert result.stdout == '*She smiled.* "Hi."\n'


def test_normalize_command_no_wrap_only_strips_markers() -> None:
    """`--no-wrap` should drop stray markers without wrapping narrative."""

    result = CliRunner().invoke(app, ["normalize", "--no-wrap"], input="The *cat* sat.")

    assert result.exit_code == 0, result.output
    assert result.stdout == "The cat sat."


def test_normalize_command_reports_missing_input_file(tmp_path: Path) -> None:
    """Missing input should fail at the input stage with exit code 1."""

    result = CliRunner().invoke(app, ["normalize", str(tmp_path / "missing.txt")])

    assert result.exit_code == 1
    assert "normalize failed at stage `input`" in result.output
    assert "Hint:" in result.output


def test_extract_markup_command_prints_placeholders_and_blocks() -> None:
    """Extract-markup should print placeholder text followed by a JSON block list."""

    result = CliRunner().invoke(
        app, ["extract-markup"], input="A <b>bold</b> move<br>done"
    )

    assert result.exit_code == 0, result.output
    text_line, blocks_json = result.stdout.split("\n", 1)
    assert text_line == "A <!--HTML_PLACEHOLDER_0--> move<!--HTML_PLACEHOLDER_1-->done"
    assert json.loads(blocks_json) == ["<b>bold</b>", "<br>"]


def test_render_command_formats_prose_around_markup() -> None:
    """Render should format prose and keep markup verbatim."""

    result = CliRunner().invoke(app, ["render"], input="Hi *you* & <b>x</b>")

    assert result.exit_code == 0, result.output
    assert result.stdout == "Hi <em>you</em> &amp; <b>x</b>\n"


def test_fix_chat_command_normalizes_every_message(tmp_path: Path) -> None:
    """Fix-chat should rewrite changed messages and print a summary."""

    chat_path = _sample_chat(tmp_path)

    result = CliRunner().invoke(app, ["fix-chat", str(chat_path)])

    assert result.exit_code == 0, result.output
    assert "Message 0: changed" in result.stdout
    assert "Message 1: changed" in result.stdout
    assert "Formatted messages: 2 (changed: 2)" in result.stdout
    assert "[progress] command=fix-chat" in result.stdout
    assert _read_messages(chat_path) == [
        '*I wave.* "Hi!"',
        '*Alice: She smiled.* "Hello."',
    ]


def test_fix_chat_command_applies_yaml_config_and_message_selection(tmp_path: Path) -> None:
    """YAML settings should apply and only the selected message should change."""

    chat_path = _sample_chat(tmp_path)
    config_path = tmp_path / "narrafix.yaml"
    config_path.write_text("strip_speaker_prefix: true\n", encoding="utf-8")

    result = CliRunner().invoke(
        app,
        ["fix-chat", str(chat_path), "--config", str(config_path), "--message-id", "1"],
    )

    assert result.exit_code == 0, result.output
    assert "Formatted messages: 1 (changed: 1)" in result.stdout
    assert _read_messages(chat_path) == [
        "I wave. *\"Hi!\"*",
        '*She smiled.* "Hello."',
    ]


def test_fix_chat_command_auto_mode_limits_message_direction(tmp_path: Path) -> None:
    """`--auto-mode input` should only format user messages."""

    chat_path = _sample_chat(tmp_path)

    result = CliRunner().invoke(app, ["fix-chat", str(chat_path), "--auto-mode", "input"])

    assert result.exit_code == 0, result.output
    assert "Message 0: changed" in result.stdout
    assert "Message 1:" not in result.stdout
    assert _read_messages(chat_path)[1] == 'Alice: She smiled. "Hello."'


def test_fix_chat_command_html_mode_sanitizes_scripts_and_stores_token(
    tmp_path: Path,
    credential_store: CredentialStoreProtocol,
    analysis_requests: list[dict[str, object]],
) -> None:
    """HTML mode should analyze scripts with the CLI token and store the token."""

    chat_path = _write_chat(
        tmp_path / "chat.jsonl",
        [{"name": "Alice", "is_user": False, "mes": "Look. <script>console.log(1)</script>"}],
    )

    result = CliRunner().invoke(
        app,
        ["fix-chat", str(chat_path), "--html", "--analysis-token", "cli-token"],
    )

    assert result.exit_code == 0, result.output
    assert "Stored analysis token in secure credential storage." in result.stdout
    assert "Approved scripts: 1" in result.stdout
    assert credential_store.get_token() == "cli-token"
    assert len(analysis_requests) == 1
    assert analysis_requests[0]["headers"] == {
        "Content-Type": "application/json",
        "Authorization": "Bearer cli-token",
    }
    assert _read_messages(chat_path) == ["*Look.* <script>console.log(1)</script>"]


def test_fix_chat_command_html_mode_uses_stored_token_without_storing_again(
    tmp_path: Path,
    credential_store: CredentialStoreProtocol,
    analysis_requests: list[dict[str, object]],
) -> None:
    """A stored token should be used when no CLI token is given."""

    credential_store.set_token("stored-token")
    chat_path = _write_chat(
        tmp_path / "chat.jsonl",
        [{"name": "Alice", "is_user": False, "mes": "<script>go()</script>"}],
    )

    result = CliRunner().invoke(app, ["fix-chat", str(chat_path), "--html"])

    assert result.exit_code == 0, result.output
    assert "Stored analysis token" not in result.stdout
    assert analysis_requests[0]["headers"] == {
        "Content-Type": "application/json",
        "Authorization": "Bearer stored-token",
    }


def test_fix_chat_command_reports_missing_config(tmp_path: Path) -> None:
    """A missing config file should fail at the config stage."""

    chat_path = _sample_chat(tmp_path)

    result = CliRunner().invoke(
        app, ["fix-chat", str(chat_path), "--config", str(tmp_path / "missing.yaml")]
    )

    assert result.exit_code == 1
    assert "fix-chat failed at stage `config`" in result.output
    assert "Config file not found" in result.output


def test_fix_chat_command_reports_invalid_auto_mode(tmp_path: Path) -> None:
    """Unknown auto modes should fail at the config stage with a hint."""

    chat_path = _sample_chat(tmp_path)

    result = CliRunner().invoke(app, ["fix-chat", str(chat_path), "--auto-mode", "sometimes"])

    assert result.exit_code == 1
    assert "fix-chat failed at stage `config`" in result.output
    assert "--auto-mode none|responses|input|both" in result.output


def test_fix_chat_command_reports_missing_chat_file(tmp_path: Path) -> None:
    """A missing chat file should fail at the load stage."""

    result = CliRunner().invoke(app, ["fix-chat", str(tmp_path / "nope.jsonl")])

    assert result.exit_code == 1
    assert "fix-chat failed at stage `load`" in result.output


def test_fix_chat_command_reports_unknown_message_id(tmp_path: Path) -> None:
    """Selecting a message outside the chat should fail at the load stage."""

    chat_path = _sample_chat(tmp_path)

    result = CliRunner().invoke(app, ["fix-chat", str(chat_path), "--message-id", "5"])

    assert result.exit_code == 1
    assert "Message with ID 5 not found." in result.output
