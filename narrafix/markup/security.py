"""HTTP client for the remote code-safety analysis service.

Responsibilities:
- Send embedded script snippets with the active security settings to the
  analysis endpoint.
- Turn every service failure into a rejected verdict so unsafe code never runs.
- Honor a timeout and a cancellation token around the request.
"""

from __future__ import annotations

import json
import re
import threading
from typing import Any

from loguru import logger
import requests

from ..config import SecuritySettings
from ..models.datatypes import SecurityAnalysisResult, SecurityViolation, ViolationPosition


class AnalysisServiceError(RuntimeError):
    """Raised when the analysis service cannot be reached or answers badly."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
    ) -> None:
        """Initialize service error metadata for diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code


class AnalysisCancelledError(RuntimeError):
    """Raised when a caller cancels an analysis before its verdict is used."""


class ScriptSecurityAnalyzer:
    """Minimal requests-based client for the code-safety analysis endpoint."""

    _MAX_SERVICE_MESSAGE_CHARS = 180

    def __init__(
        self,
        settings: SecuritySettings,
        *,
        api_token: str | None = None,
    ) -> None:
        """Initialize the client from immutable security settings."""

        self.settings = settings
        self.api_token = api_token.strip() if isinstance(api_token, str) else ""

    def analyze_script(
        self,
        code: str,
        *,
        cancel_event: threading.Event | None = None,
    ) -> SecurityAnalysisResult:
        """Return the service verdict for one snippet.

        Service failures produce a rejected result carrying a single
        `analysis_error` violation. Cancellation raises `AnalysisCancelledError`.
        """

        if not self.settings.enabled:
            return SecurityAnalysisResult(safe=True, violations=(), sanitized_code=code)

        self._raise_if_cancelled(cancel_event)
        try:
            payload = self._post_analysis(code)
            result = self._parse_result(payload)
        except AnalysisServiceError as exc:
            logger.warning(
                "Script analysis failed (kind={}): {}", exc.failure_kind, str(exc)
            )
            result = self._failure_result(str(exc))
        self._raise_if_cancelled(cancel_event)
        return result

    def request_payload(self, code: str) -> dict[str, Any]:
        """Build the JSON request body for one snippet."""

        return {
            "code": code,
            "settings": {
                "enabled": self.settings.enabled,
                "allowedAPIs": list(self.settings.allowed_apis),
                "blockedAPIs": list(self.settings.blocked_apis),
                "maxLength": self.settings.max_script_length,
                "allowObfuscation": self.settings.allow_obfuscation,
            },
        }

    def _post_analysis(self, code: str) -> Any:
        """POST the snippet to the analysis endpoint and decode the JSON answer."""

        headers = {"Content-Type": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        try:
            response = requests.post(
                self.settings.endpoint,
                headers=headers,
                json=self.request_payload(code),
                timeout=self.settings.timeout_seconds,
            )
            response.raise_for_status()
            body = bytes(response.content)
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else 0
            raise AnalysisServiceError(
                f"Analysis server responded with status: {status_code}",
                failure_kind="http_error",
                status_code=status_code,
            ) from exc
        except requests.RequestException as exc:
            if isinstance(exc, requests.Timeout):
                raise AnalysisServiceError(
                    "Analysis request timed out.", failure_kind="timeout"
                ) from exc
            raise AnalysisServiceError(
                f"Analysis request transport error: {self._short_message(str(exc))}",
                failure_kind="transport",
            ) from exc
        except TimeoutError as exc:
            raise AnalysisServiceError(
                "Analysis request timed out.", failure_kind="timeout"
            ) from exc

        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise AnalysisServiceError(
                "Analysis server returned invalid JSON payload.",
                failure_kind="invalid_response",
            ) from exc

    @staticmethod
    def _parse_result(payload: Any) -> SecurityAnalysisResult:
        """Validate and convert a decoded analysis response."""

        if not isinstance(payload, dict):
            raise AnalysisServiceError(
                "Analysis response must be a JSON object.",
                failure_kind="invalid_response",
            )

        raw_violations = payload.get("violations") or []
        if not isinstance(raw_violations, list):
            raise AnalysisServiceError(
                "Analysis response `violations` must be a list.",
                failure_kind="invalid_response",
            )
        violations = tuple(
            SecurityViolation.from_payload(item)
            for item in raw_violations
            if isinstance(item, dict)
        )

        sanitized_code = payload.get("sanitizedCode")
        if sanitized_code is not None and not isinstance(sanitized_code, str):
            raise AnalysisServiceError(
                "Analysis response `sanitizedCode` must be a string.",
                failure_kind="invalid_response",
            )

        return SecurityAnalysisResult(
            safe=bool(payload.get("safe", False)),
            violations=violations,
            sanitized_code=sanitized_code,
        )

    @staticmethod
    def _failure_result(reason: str) -> SecurityAnalysisResult:
        """Return the rejected verdict used when analysis could not complete."""

        violation = SecurityViolation(
            type="analysis_error",
            node="root",
            position=ViolationPosition(row=0, col=0),
            severity="error",
            message=f"Failed to analyze JavaScript: {reason}",
        )
        return SecurityAnalysisResult(safe=False, violations=(violation,), sanitized_code=None)

    @staticmethod
    def _raise_if_cancelled(cancel_event: threading.Event | None) -> None:
        """Raise when the cancellation token has been set."""

        if cancel_event is not None and cancel_event.is_set():
            raise AnalysisCancelledError("Script analysis was cancelled.")

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap service message length, redacting bearer tokens."""

        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            text,
        )
        compact = " ".join(redacted.split())
        if len(compact) <= cls._MAX_SERVICE_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_SERVICE_MESSAGE_CHARS - 1]}..."
