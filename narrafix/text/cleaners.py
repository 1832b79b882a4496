"""Deterministic pre-structural text rules.

Responsibilities:
- Provide composable rules that run before any region is protected.
- Keep canonicalization predictable so normalization stays idempotent.
"""

from __future__ import annotations

import re
from typing import Protocol


EMPHASIS_MARKER = "*"


class CleanerRule(Protocol):
    """Protocol for text cleaning rules."""

    def apply(self, text: str) -> str:
        """Apply a single cleaning transformation."""


class NormalizeQuotes:
    """Canonicalize typographic double quotes to the plain `"` character."""

    _CURLY_DOUBLE_QUOTES_RE = re.compile("[“”„‟]")

    def apply(self, text: str) -> str:
        """Replace curly double quotes with ASCII double quotes."""

        return self._CURLY_DOUBLE_QUOTES_RE.sub('"', text)


class CollapseEmphasisRuns:
    """Collapse runs of two or more emphasis markers into a single marker.

    Bold markers are treated as plain emphasis, which keeps later quote and
    narrative matching unambiguous.
    """

    _RUN_RE = re.compile(r"\*{2,}")

    def apply(self, text: str) -> str:
        """Replace every marker run with exactly one marker."""

        return self._RUN_RE.sub(EMPHASIS_MARKER, text)


class StripSpeakerLabel:
    """Remove a leading `Name:` label written by the message author.

    The label may be wrapped in emphasis markers and followed by blank lines.
    Leading whitespace of the text is kept.
    """

    def __init__(self, speaker_name: str | None) -> None:
        """Compile the label pattern for `speaker_name`, or disable the rule."""

        name = speaker_name.strip() if isinstance(speaker_name, str) else ""
        self.speaker_name = name
        self._label_re = (
            re.compile(
                rf"\A(\s*)\*?{re.escape(name)}[ \t]*:[ \t]*\*?\s*",
                re.IGNORECASE,
            )
            if name
            else None
        )

    def apply(self, text: str) -> str:
        """Strip the label when it starts the text."""

        if self._label_re is None:
            return text
        return self._label_re.sub(lambda match: match.group(1), text, count=1)


class TextCleaner:
    """Apply a sequence of deterministic cleaner rules."""

    def __init__(self, rules: list[CleanerRule] | None = None) -> None:
        """Initialize with custom rules or the default canonicalization sequence."""

        self.rules = rules or [
            NormalizeQuotes(),
            CollapseEmphasisRuns(),
        ]

    def clean(self, text: str) -> str:
        """Apply all configured rules in order."""

        current = text
        for rule in self.rules:
            current = rule.apply(current)
        return current
