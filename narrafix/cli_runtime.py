"""CLI runtime resolution helpers for the analysis-service token.

This module isolates the hidden token prompt, runtime source assembly, and
secure token persistence from the command wiring layer.
"""

from __future__ import annotations

import os
from typing import Callable, Mapping, Protocol

import typer

from .config import FormatterConfig, RuntimeConfigSources
from .credentials import create_credential_store
from .errors import FormatStageError
from .parsing import normalize_optional_string


class CredentialStoreProtocol(Protocol):
    """Protocol for secure credential store operations used by the CLI."""

    def get_token(self) -> str | None:
        """Return the currently stored token, if available."""

    def set_token(self, token: str) -> None:
        """Persist a token value in secure storage."""


def resolve_analysis_token_sources(
    analysis_token: str | None,
    prompt_analysis_token: bool,
    store_analysis_token: bool,
    credential_store_factory: Callable[[], CredentialStoreProtocol] = create_credential_store,
) -> tuple[dict[str, str], dict[str, str]]:
    """Resolve CLI and secure runtime source mappings for the analysis token."""

    runtime_cli_values: dict[str, str] = {}
    normalized_token = normalize_optional_string(analysis_token)
    if normalized_token is not None:
        runtime_cli_values["analysis_token"] = normalized_token
    elif prompt_analysis_token:
        prompted_token = normalize_optional_string(
            typer.prompt(
                "Analysis service token (hidden; leave blank to skip)",
                default="",
                hide_input=True,
                show_default=False,
            )
        )
        if prompted_token is not None:
            runtime_cli_values["analysis_token"] = prompted_token

    credential_store = credential_store_factory()
    runtime_secure_values: dict[str, str] = {}
    stored_token = credential_store.get_token()
    if stored_token is not None:
        runtime_secure_values["analysis_token"] = stored_token

    if "analysis_token" in runtime_cli_values and store_analysis_token:
        try:
            credential_store.set_token(runtime_cli_values["analysis_token"])
            typer.echo("Stored analysis token in secure credential storage.")
        except Exception as exc:
            raise FormatStageError(
                stage="credentials",
                detail=f"Failed to store analysis token securely: {exc}",
                hint=(
                    "Install and configure a keyring backend, or rerun with "
                    "`--no-store-analysis-token` for one-off usage."
                ),
            ) from exc

    return runtime_cli_values, runtime_secure_values


def resolve_analysis_token(
    runtime_cli_values: Mapping[str, str],
    runtime_secure_values: Mapping[str, str],
    env: Mapping[str, str] | None = None,
) -> str | None:
    """Apply token precedence over CLI, secure storage and environment values."""

    return FormatterConfig.resolve_analysis_token(
        RuntimeConfigSources(
            cli=runtime_cli_values,
            secure=runtime_secure_values,
            env=os.environ if env is None else env,
        )
    )
