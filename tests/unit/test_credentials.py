"""Unit tests for secure credential store helpers."""

from __future__ import annotations

import pytest
from keyring.errors import KeyringError

from narrafix import credentials as credentials_module
from narrafix.credentials import KeyringCredentialStore, create_credential_store


class FakeKeyringModule:
    """In-memory keyring stub for deterministic credential store tests."""

    def __init__(self, priority: float = 1.0) -> None:
        """Initialize fake storage dictionary and backend priority."""

        self._storage: dict[tuple[str, str], str] = {}
        self.priority = priority

    def get_keyring(self) -> "FakeKeyringModule":
        """Return the fake backend itself."""

        return self

    def get_password(self, service_name: str, account_name: str) -> str | None:
        """Return previously stored password if present."""

        return self._storage.get((service_name, account_name))

    def set_password(self, service_name: str, account_name: str, value: str) -> None:
        """Store password value for the service/account key."""

        self._storage[(service_name, account_name)] = value

    def delete_password(self, service_name: str, account_name: str) -> None:
        """Delete password value for the service/account key."""

        self._storage.pop((service_name, account_name), None)


class BrokenKeyringModule(FakeKeyringModule):
    """Keyring stub whose backend raises for every operation."""

    def get_password(self, service_name: str, account_name: str) -> str | None:
        """Raise a backend error."""

        raise KeyringError("backend locked")

    def set_password(self, service_name: str, account_name: str, value: str) -> None:
        """Raise a backend error."""

        raise KeyringError("backend locked")


def test_keyring_store_roundtrip_set_get_clear(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keyring store should set/get/clear the token via the keyring backend."""

    fake_keyring = FakeKeyringModule()
    monkeypatch.setattr(credentials_module, "keyring", fake_keyring)
    store = KeyringCredentialStore()

    assert store.is_available() is True
    assert store.get_token() is None

    store.set_token("  abc123  ")
    assert store.get_token() == "abc123"
    assert fake_keyring.get_password("narrafix", "analysis_api_token") == "abc123"

    assert store.clear_token() is True
    assert store.get_token() is None
    assert store.clear_token() is False


def test_keyring_store_rejects_blank_token(monkeypatch: pytest.MonkeyPatch) -> None:
    """Blank tokens should not be written."""

    monkeypatch.setattr(credentials_module, "keyring", FakeKeyringModule())

    with pytest.raises(ValueError, match="non-empty"):
        KeyringCredentialStore().set_token("   ")


def test_keyring_store_degrades_when_backend_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    """Backend errors should read as a missing token and fail writes clearly."""

    monkeypatch.setattr(credentials_module, "keyring", BrokenKeyringModule(priority=0))
    store = KeyringCredentialStore()

    assert store.is_available() is False
    assert store.get_token() is None
    with pytest.raises(RuntimeError, match="Secure credential storage is unavailable"):
        store.set_token("abc")


def test_create_credential_store_returns_keyring_store() -> None:
    """Factory should build the keyring-backed implementation."""

    assert isinstance(create_credential_store(), KeyringCredentialStore)
