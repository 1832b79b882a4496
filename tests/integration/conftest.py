"""Integration-test fixtures for deterministic credential and analysis behavior."""

from __future__ import annotations

import json
import os

import pytest

from narrafix.markup import security as security_http


class InMemoryCredentialStore:
    """Simple in-memory credential store used for CLI tests."""

    def __init__(self, initial_token: str | None = None) -> None:
        """Initialize the store with an optional pre-seeded token."""

        self._token = initial_token

    def is_available(self) -> bool:
        """Report the store as usable."""

        return True

    def get_token(self) -> str | None:
        """Return currently stored token value."""

        return self._token

    def set_token(self, token: str) -> None:
        """Persist a normalized token value."""

        self._token = token.strip()

    def clear_token(self) -> bool:
        """Clear the token and return whether one existed."""

        existed = self._token is not None
        self._token = None
        return existed


class _MockRequestsResponse:
    """Minimal requests response mock for analysis endpoint patching."""

    def __init__(self, *, payload: bytes, status_code: int = 200) -> None:
        """Initialize response with raw payload bytes and HTTP status."""

        self.content = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        """Raise HTTPError when the response status represents a failure."""

        if self.status_code >= 400:
            raise security_http.requests.HTTPError(
                f"HTTP {self.status_code} error",
                response=self,
            )


@pytest.fixture
def credential_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryCredentialStore:
    """Route CLI credential access to an in-memory store."""

    store = InMemoryCredentialStore()
    monkeypatch.setattr("narrafix.cli.create_credential_store", lambda: store)
    return store


@pytest.fixture
def analysis_requests(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, object]]:
    """Approve every analyzed snippet unchanged and record the outgoing requests."""

    requests_seen: list[dict[str, object]] = []

    def _mock_post(url: str, **kwargs: object) -> _MockRequestsResponse:
        """Return an approving verdict echoing the submitted code."""

        requests_seen.append({"url": url, **kwargs})
        body = kwargs["json"]
        assert isinstance(body, dict)
        return _MockRequestsResponse(
            payload=json.dumps(
                {"safe": True, "violations": [], "sanitizedCode": body["code"]}
            ).encode("utf-8")
        )

    monkeypatch.setattr("narrafix.markup.security.requests.post", _mock_post)
    return requests_seen


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Drop `NARRAFIX_*` variables so host settings never leak into CLI runs."""

    for key in list(os.environ):
        if key.startswith("NARRAFIX_"):
            monkeypatch.delenv(key)
