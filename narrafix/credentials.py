"""Secure credential storage for the analysis-service token.

Responsibilities:
- Persist the analysis-service token in an OS-backed secure credential store.
- Provide deterministic read/write/delete operations for that token.
- Avoid logging or exposing secret values in diagnostics.

Key types:
- `CredentialStore`: interface for token persistence.
- `KeyringCredentialStore`: keyring-backed secure credential storage.
"""

from __future__ import annotations

from dataclasses import dataclass

import keyring
from keyring.errors import KeyringError, PasswordDeleteError


_DEFAULT_SERVICE_NAME = "narrafix"
_DEFAULT_ACCOUNT_NAME = "analysis_api_token"


class CredentialStore:
    """Interface for secure token operations."""

    def is_available(self) -> bool:
        """Return whether secure credential operations are available."""

        raise NotImplementedError

    def get_token(self) -> str | None:
        """Load the stored token from secure storage, when available."""

        raise NotImplementedError

    def set_token(self, token: str) -> None:
        """Persist a token in secure storage."""

        raise NotImplementedError

    def clear_token(self) -> bool:
        """Delete a stored token and return whether one existed."""

        raise NotImplementedError


@dataclass(slots=True)
class KeyringCredentialStore(CredentialStore):
    """Secure credential store backed by the `keyring` package."""

    service_name: str = _DEFAULT_SERVICE_NAME
    account_name: str = _DEFAULT_ACCOUNT_NAME

    def is_available(self) -> bool:
        """Return `False` when only the keyring null/fail backend is configured."""

        backend = keyring.get_keyring()
        priority = getattr(backend, "priority", 1)
        return priority > 0

    def get_token(self) -> str | None:
        """Get a normalized token from keyring, returning `None` when missing."""

        try:
            value = keyring.get_password(self.service_name, self.account_name)
        except KeyringError:
            return None
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            return None
        return normalized

    def set_token(self, token: str) -> None:
        """Persist a normalized token in keyring."""

        normalized = token.strip()
        if not normalized:
            raise ValueError("Analysis token must be a non-empty string.")
        try:
            keyring.set_password(self.service_name, self.account_name, normalized)
        except KeyringError as exc:
            raise RuntimeError(
                "Secure credential storage is unavailable; the analysis token was not saved."
            ) from exc

    def clear_token(self) -> bool:
        """Remove the stored token from keyring and report if one was present."""

        if self.get_token() is None:
            return False
        try:
            keyring.delete_password(self.service_name, self.account_name)
        except PasswordDeleteError:
            return False
        return True


def create_credential_store() -> CredentialStore:
    """Create the default secure credential store implementation."""

    return KeyringCredentialStore()
