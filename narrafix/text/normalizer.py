"""Narrative/quote normalization for chat-message text.

Responsibilities:
- Wrap narrative prose in exactly one layer of emphasis.
- Keep quoted dialogue free of emphasis.
- Leave code, markup and out-of-character annotations byte-for-byte intact.

The transformation is pure: every table it builds lives for one call only, so
`normalize` is safe to call from several threads at once.
"""

from __future__ import annotations

import re

from .cleaners import EMPHASIS_MARKER, StripSpeakerLabel, TextCleaner
from .placeholders import BOUNDARY_TOKEN_PATTERN, PlaceholderTable, protect_literal_regions


# Emphasis-wrapped quote first, so `*"..."*` wins over the bare quote inside it.
_QUOTE_RE = re.compile(r'\*+"([^"]*?)"\*+|"([^"]*?)"')
_BOUNDARY_RE = re.compile(rf'"[^"]*"|{BOUNDARY_TOKEN_PATTERN}')
_NEWLINE_RUN_SPLIT_RE = re.compile(r"(\n+)")
_ADJACENT_EMPHASIS_RE = re.compile(r"\*([ \t]+)\*")


def _strip_markers(text: str) -> str:
    """Remove every emphasis marker from `text`."""

    return text.replace(EMPHASIS_MARKER, "")


def _split_envelope(text: str) -> tuple[str, str, str]:
    """Split `text` into leading whitespace, trimmed content and trailing whitespace."""

    content = text.strip()
    if not content:
        return text, "", ""
    leading = text[: len(text) - len(text.lstrip())]
    trailing = text[len(text.rstrip()) :]
    return leading, content, trailing


def canonicalize_quotes(text: str) -> str:
    """Rewrite every quoted span, wrapped or bare, as a plain marker-free quote."""

    def _clean(match: re.Match[str]) -> str:
        inner = match.group(1) if match.group(1) is not None else match.group(2)
        return f'"{_strip_markers(inner)}"'

    return _QUOTE_RE.sub(_clean, text)


def rewrite_narrative_piece(piece: str, wrap_narrative: bool = True) -> str:
    """Rewrite one newline-free narrative piece inside its whitespace envelope."""

    leading, content, trailing = _split_envelope(piece)
    if not content:
        return piece

    cleaned = _strip_markers(content)
    if not cleaned.strip():
        return leading + cleaned + trailing
    if wrap_narrative:
        cleaned = f"{EMPHASIS_MARKER}{cleaned}{EMPHASIS_MARKER}"
    return leading + cleaned + trailing


def rewrite_narrative_segment(segment: str, wrap_narrative: bool = True) -> str:
    """Rewrite a narrative segment paragraph by paragraph, keeping newline runs."""

    if not segment.strip() and "\n" not in segment:
        return segment

    parts = _NEWLINE_RUN_SPLIT_RE.split(segment)
    return "".join(
        part if part.startswith("\n") else rewrite_narrative_piece(part, wrap_narrative)
        for part in parts
    )


def merge_adjacent_emphasis(text: str) -> str:
    """Merge `*a* *b*` artifacts into `*a b*` across horizontal whitespace."""

    return _ADJACENT_EMPHASIS_RE.sub(lambda match: match.group(1), text)


def rewrite_quotes_and_narrative(text: str, wrap_narrative: bool = True) -> str:
    """Apply quote canonicalization, segmentation and narrative rewriting.

    `text` is working text whose literal regions are already placeholders.
    Quoted spans and placeholder tokens are boundaries; everything between two
    boundaries is narrative.
    """

    leading, content, trailing = _split_envelope(text)
    if not content:
        return text

    current = canonicalize_quotes(content)

    pieces: list[str] = []
    last_index = 0
    for match in _BOUNDARY_RE.finditer(current):
        pieces.append(rewrite_narrative_segment(current[last_index : match.start()], wrap_narrative))
        pieces.append(match.group(0))
        last_index = match.end()
    pieces.append(rewrite_narrative_segment(current[last_index:], wrap_narrative))

    return merge_adjacent_emphasis(leading + "".join(pieces) + trailing)


def normalize(
    text: str,
    wrap_narrative: bool = True,
    speaker_name: str | None = None,
) -> str:
    """Normalize chat-message text to the narrative/quote styling convention.

    Args:
        text: Raw message text.
        wrap_narrative: Wrap narrative spans in one pair of emphasis markers.
            When false, narrative spans only lose their stray markers.
        speaker_name: Author name whose leading `Name:` label is removed.

    Returns:
        Normalized text. Empty and whitespace-only input is returned unchanged.
    """

    text = TextCleaner().clean(text)
    if not text.strip():
        return text

    text = StripSpeakerLabel(speaker_name).apply(text)
    if not text.strip():
        return text

    table = PlaceholderTable()
    working = protect_literal_regions(text, table)
    rewritten = rewrite_quotes_and_narrative(working, wrap_narrative)
    return table.restore(rewritten)


class TextNormalizer:
    """Normalize message text with a fixed wrapping policy."""

    def __init__(self, wrap_narrative: bool = True) -> None:
        self.wrap_narrative = wrap_narrative

    def normalize(self, text: str, speaker_name: str | None = None) -> str:
        """Normalize `text`, optionally stripping the speaker's leading label."""

        return normalize(text, self.wrap_narrative, speaker_name)
