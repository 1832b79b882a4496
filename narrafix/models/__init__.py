"""Typed data models used across Narrafix modules."""

from .datatypes import (
    ChatMessage,
    MessageResult,
    SanitizedHtml,
    SecurityAnalysisResult,
    SecurityViolation,
    ViolationPosition,
)

__all__ = [
    "ChatMessage",
    "MessageResult",
    "SanitizedHtml",
    "SecurityAnalysisResult",
    "SecurityViolation",
    "ViolationPosition",
]
