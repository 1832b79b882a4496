"""Core datatypes shared across Narrafix modules.

Responsibilities:
- Represent immutable records exchanged between formatting stages.
- Provide explicit typing for chat messages and code-safety analysis payloads.

Key types:
- `ChatMessage`, `ViolationPosition`, `SecurityViolation`,
  `SecurityAnalysisResult`, `SanitizedHtml`, and `MessageResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """One message as exposed by the host message store.

    Attributes:
        message_id: 0-based message position within the chat.
        text: Raw message text.
        author_name: Display name of the message author.
        is_user: Whether the message was written by the user (outgoing).
    """

    message_id: int
    text: str
    author_name: str
    is_user: bool = False


@dataclass(frozen=True, slots=True)
class ViolationPosition:
    """Source position reported by the analysis service."""

    row: int = 0
    col: int = 0


@dataclass(frozen=True, slots=True)
class SecurityViolation:
    """A single finding reported for an analyzed snippet.

    Attributes:
        type: Violation category reported by the analysis service.
        node: Syntax node or element the finding refers to.
        position: Row/column position inside the snippet.
        severity: Either `error` or `warning`.
        message: Human-readable description.
    """

    type: str
    node: str
    position: ViolationPosition
    severity: str
    message: str

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> SecurityViolation:
        """Build a violation from one JSON object of the analysis response."""

        position_payload = payload.get("position")
        row = 0
        col = 0
        if isinstance(position_payload, Mapping):
            row = _as_int(position_payload.get("row"))
            col = _as_int(position_payload.get("col", position_payload.get("column")))
        severity = str(payload.get("severity") or "error").strip().lower()
        if severity not in {"error", "warning"}:
            severity = "error"
        return cls(
            type=str(payload.get("type") or "unknown"),
            node=str(payload.get("node") or ""),
            position=ViolationPosition(row=row, col=col),
            severity=severity,
            message=str(payload.get("message") or ""),
        )

    def retagged(self, *, type: str, node: str, message: str) -> SecurityViolation:
        """Return a copy attributed to a different source element."""

        return replace(self, type=type, node=node, message=message)


@dataclass(frozen=True, slots=True)
class SecurityAnalysisResult:
    """Verdict returned by the code-safety analysis service.

    `sanitized_code` is `None` or empty when the snippet is rejected outright.
    """

    safe: bool
    violations: tuple[SecurityViolation, ...] = field(default_factory=tuple)
    sanitized_code: str | None = None

    @property
    def rejected(self) -> bool:
        """Return whether the snippet must not be executed at all."""

        return not self.sanitized_code

    def warnings(self) -> tuple[SecurityViolation, ...]:
        """Return only warning-level violations."""

        return tuple(item for item in self.violations if item.severity == "warning")


@dataclass(frozen=True, slots=True)
class SanitizedHtml:
    """Rendered message HTML with scripts removed and approved code collected."""

    html: str
    executable_scripts: tuple[str, ...] = field(default_factory=tuple)
    violations: tuple[SecurityViolation, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class MessageResult:
    """Outcome of formatting one chat message.

    Attributes:
        message_id: 0-based message position within the chat.
        original_text: Message text before formatting.
        text: Message text after formatting.
        changed: Whether the stored text was updated.
        rendered: Sanitized HTML output when HTML post-processing ran.
    """

    message_id: int
    original_text: str
    text: str
    changed: bool
    rendered: SanitizedHtml | None = None


def _as_int(value: object) -> int:
    """Coerce optional numeric payload values to `int`, defaulting to zero."""

    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return 0
