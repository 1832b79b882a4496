"""Command-line interface for Narrafix.

Responsibilities:
- Expose the normalizer and markup extractor for ad-hoc text.
- Format messages inside JSONL chat files through `MessagePipeline`.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import echo_message_results, exit_with_command_error
from .cli_runtime import resolve_analysis_token, resolve_analysis_token_sources
from .config import AutoMode, ConfigLoader, FormatterConfig
from .credentials import create_credential_store
from .errors import FormatStageError
from .io.chat_store import JsonlChatStore
from .markup.blocks import extract_markup_blocks
from .markup.render import render_with_markup
from .pipeline import MessagePipeline
from .telemetry.logger import RunLogger
from .text.normalizer import normalize

app = typer.Typer(
    name="narrafix",
    no_args_is_help=True,
    help="Narrafix CLI.",
)

_STDIN_MARKER = "-"


class StageProgressIndicator:
    """Render deterministic per-stage progress lines for chat formatting."""

    _SPINNER_FRAMES = "|/-\\"

    def __init__(self, command_name: str) -> None:
        """Initialize progress indicator metadata for a command invocation."""

        self._command_name = command_name

    def on_stage_start(self, stage_name: str, stage_index: int, stage_total: int) -> None:
        """Print one progress line for a stage start transition."""

        spinner = self._SPINNER_FRAMES[(stage_index - 1) % len(self._SPINNER_FRAMES)]
        typer.echo(
            f"[progress] command={self._command_name} "
            f"{spinner} {stage_index}/{stage_total} stage={stage_name}"
        )


def _read_input_text(source: str) -> str:
    """Read command input from a file path or from stdin for `-`."""

    if source == _STDIN_MARKER:
        return typer.get_text_stream("stdin").read()

    path = Path(source)
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise FormatStageError(
            stage="input",
            detail=f"Input file not found: `{path}`.",
            hint="Pass an existing file path, or `-` to read from stdin.",
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise FormatStageError(
            stage="input",
            detail=f"Failed to read input file `{path}`: {exc}",
            hint="Verify the file is UTF-8 text and readable.",
        ) from exc


def _load_yaml_config(config_path: Path | None) -> FormatterConfig | None:
    """Load a YAML config file when requested and map failures to stage errors."""

    if config_path is None:
        return None

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise FormatStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise FormatStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except Exception as exc:
        raise FormatStageError(
            stage="config",
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify YAML syntax and file permissions.",
        ) from exc


def _resolve_fix_chat_config(
    config_file: Path | None,
    auto_mode: str | None,
    html: bool | None,
) -> FormatterConfig:
    """Resolve effective config from YAML or environment plus explicit CLI overrides."""

    loaded_config = _load_yaml_config(config_file)
    if loaded_config is None:
        try:
            loaded_config = ConfigLoader.from_env()
        except ValueError as exc:
            raise FormatStageError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Fix or unset the offending `NARRAFIX_*` variable.",
            ) from exc

    overrides: dict[str, object] = {}
    if auto_mode is not None:
        try:
            overrides["auto_mode"] = AutoMode.parse(auto_mode)
        except ValueError as exc:
            raise FormatStageError(
                stage="config",
                detail=str(exc),
                hint="Use `--auto-mode none|responses|input|both`.",
            ) from exc
    if html is not None:
        overrides["include_html"] = html
    if not overrides:
        return loaded_config
    return loaded_config.with_overrides(**overrides)


def _open_chat_store(chat_file: Path) -> JsonlChatStore:
    """Open a chat file and map read or parse failures to stage errors."""

    try:
        return JsonlChatStore(chat_file)
    except FileNotFoundError as exc:
        raise FormatStageError(
            stage="load",
            detail=f"Chat file not found: `{chat_file}`.",
            hint="Pass the path of an existing `.jsonl` chat file.",
        ) from exc
    except ValueError as exc:
        raise FormatStageError(
            stage="load",
            detail=str(exc),
            hint="Chat files hold one JSON header line followed by one message per line.",
        ) from exc


@app.command("normalize")
def normalize_command(
    source: Annotated[
        str,
        typer.Argument(help="Path to a UTF-8 text file, or `-` for stdin."),
    ] = _STDIN_MARKER,
    no_wrap: Annotated[
        bool,
        typer.Option("--no-wrap", help="Strip stray emphasis without wrapping narrative."),
    ] = False,
    speaker: Annotated[
        str | None,
        typer.Option("--speaker", help="Speaker name whose leading `Name:` label is removed."),
    ] = None,
) -> None:
    """Print the narrative/quote-normalized form of a text."""

    try:
        text = _read_input_text(source)
        normalized = normalize(text, wrap_narrative=not no_wrap, speaker_name=speaker)
    except Exception as exc:
        exit_with_command_error("normalize", exc)

    typer.echo(normalized, nl=False)


@app.command("extract-markup")
def extract_markup_command(
    source: Annotated[
        str,
        typer.Argument(help="Path to a UTF-8 text file, or `-` for stdin."),
    ] = _STDIN_MARKER,
) -> None:
    """Print text with markup blocks replaced by placeholders, then the blocks as JSON."""

    try:
        text = _read_input_text(source)
        blocks: list[str] = []
        with_placeholders = extract_markup_blocks(text, blocks)
    except Exception as exc:
        exit_with_command_error("extract-markup", exc)

    typer.echo(with_placeholders)
    typer.echo(json.dumps(blocks, ensure_ascii=False, indent=2))


@app.command("render")
def render_command(
    source: Annotated[
        str,
        typer.Argument(help="Path to a UTF-8 text file, or `-` for stdin."),
    ] = _STDIN_MARKER,
    code_blocks: Annotated[
        bool,
        typer.Option(
            "--code-blocks/--no-code-blocks",
            help="Render markup written inside html/xml fenced code blocks.",
        ),
    ] = True,
) -> None:
    """Print HTML for a text, formatting prose and keeping markup blocks verbatim."""

    try:
        text = _read_input_text(source)
        rendered = render_with_markup(text, include_code_blocks=code_blocks)
    except Exception as exc:
        exit_with_command_error("render", exc)

    typer.echo(rendered)


@app.command("fix-chat")
def fix_chat_command(
    chat_file: Annotated[Path, typer.Argument(help="Path to a JSONL chat file.")],
    message_ids: Annotated[
        list[int] | None,
        typer.Option(
            "--message-id",
            help="0-based message id to format; repeat for several messages.",
        ),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to YAML config file."),
    ] = None,
    auto_mode: Annotated[
        str | None,
        typer.Option(
            "--auto-mode",
            help=(
                "Restrict formatting to `responses`, `input` or `both`; "
                "`none` formats every message."
            ),
        ),
    ] = None,
    html: Annotated[
        bool | None,
        typer.Option(
            "--html/--no-html",
            help="Render and sanitize message HTML after normalization.",
        ),
    ] = None,
    analysis_token: Annotated[
        str | None,
        typer.Option(
            "--analysis-token",
            help=(
                "Analysis service token override. Prefer `--prompt-analysis-token` "
                "to avoid shell history."
            ),
        ),
    ] = None,
    prompt_analysis_token: Annotated[
        bool,
        typer.Option(
            "--prompt-analysis-token",
            help="Prompt for the analysis service token with hidden input.",
        ),
    ] = False,
    store_analysis_token: Annotated[
        bool,
        typer.Option(
            "--store-analysis-token/--no-store-analysis-token",
            help="Persist a CLI-entered analysis token to secure credential storage.",
        ),
    ] = True,
) -> None:
    """Normalize messages in a chat file and save the changes."""

    try:
        config = _resolve_fix_chat_config(config_file, auto_mode, html)
        store = _open_chat_store(chat_file)

        api_token: str | None = None
        if config.include_html:
            runtime_cli_values, runtime_secure_values = resolve_analysis_token_sources(
                analysis_token=analysis_token,
                prompt_analysis_token=prompt_analysis_token,
                store_analysis_token=store_analysis_token,
                credential_store_factory=create_credential_store,
            )
            api_token = resolve_analysis_token(runtime_cli_values, runtime_secure_values)

        progress = StageProgressIndicator(command_name="fix-chat")
        pipeline = MessagePipeline(
            config,
            store,
            run_logger=RunLogger(),
            stage_progress_callback=progress.on_stage_start,
            api_token=api_token,
        )
        if message_ids:
            results = pipeline.format_chat(message_ids)
        else:
            results = pipeline.format_chat(auto_only=config.auto_mode is not AutoMode.NONE)
    except Exception as exc:
        exit_with_command_error("fix-chat", exc)

    echo_message_results(results)


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
