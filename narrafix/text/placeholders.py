"""Protected-region extraction and restoration.

Responsibilities:
- Replace literal regions (fenced code, markup, inline code, annotations) with
  placeholder tokens so that quote/emphasis rewriting never touches them.
- Restore every region verbatim after rewriting, including regions nested in
  other regions.

Key types:
- `PlaceholderTable`: per-call ordered storage of extracted literals.
- `protect_literal_regions`: run all extraction passes in precedence order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re

from loguru import logger


FENCED = "FENCED"
INLINE = "INLINE"
OOC = "OOC"
HTML = "HTML"
ESCAPED = "ESCAPED"

CATEGORIES = (ESCAPED, FENCED, HTML, INLINE, OOC)

# Tokens that could be mistaken for generated placeholders when typed by a user.
_PLACEHOLDER_SHAPED_RE = re.compile(r"__(?:FENCED|INLINE|OOC|HTML|ESCAPED)_\d+__")
_RESTORABLE_RE = re.compile(r"__(FENCED|INLINE|OOC|HTML)_(\d+)__")
_ESCAPED_RE = re.compile(r"__ESCAPED_(\d+)__")
BOUNDARY_TOKEN_PATTERN = r"__(?:FENCED|INLINE|OOC|HTML|ESCAPED)_\d+__"

_FENCED_RE = re.compile(r"```[\s\S]*?```")
_SELF_CLOSING_TAG_RE = re.compile(r"<([a-zA-Z][^/\s>]*)(?:\s+[^>]*)?\s*/>")
_VOID_TAG_RE = re.compile(
    r"<(?:area|base|br|col|embed|hr|img|input|link|meta|source|track|wbr)\b[^>]*>",
    re.IGNORECASE,
)
_PAIRED_TAG_RE = re.compile(
    r"<([a-zA-Z][^/\s>]*)(?:\s+[^>]*)?>((?:(?!<\1[^>]*>|</\1>)[\s\S])*?)</\1>"
)
_INLINE_CODE_RE = re.compile(r"`[^`\n]*?`")
_OOC_RE = re.compile(r"\(OOC:[\s\S]*?\)", re.IGNORECASE)

MAX_MARKUP_SWEEPS = 50


@dataclass(slots=True)
class PlaceholderTable:
    """Ordered, append-only storage of extracted literal regions by category."""

    blocks: dict[str, list[str]] = field(
        default_factory=lambda: {category: [] for category in CATEGORIES}
    )

    def protect(self, category: str, literal: str) -> str:
        """Store `literal` and return the placeholder token standing in for it."""

        entries = self.blocks[category]
        entries.append(literal)
        return f"__{category}_{len(entries) - 1}__"

    def count(self, category: str | None = None) -> int:
        """Return the number of stored literals, optionally for one category."""

        if category is not None:
            return len(self.blocks[category])
        return sum(len(entries) for entries in self.blocks.values())

    def restore(self, text: str) -> str:
        """Substitute every placeholder in `text` with its original literal.

        Restored markup can still hold placeholders from earlier passes, so
        expansion repeats until nothing changes. The pass cap only guards
        against a table that somehow references itself.
        """

        max_passes = self.count() * 2 + 5
        passes = 0
        current = text
        while passes < max_passes:
            expanded = _RESTORABLE_RE.sub(self._lookup, current)
            passes += 1
            if expanded == current:
                break
            current = expanded
        else:
            logger.warning(
                "Placeholder restoration stopped after {} passes; result may be incomplete.",
                max_passes,
            )

        return _ESCAPED_RE.sub(self._lookup_escaped, current)

    def _lookup(self, match: re.Match[str]) -> str:
        """Return the stored literal for a match, or the token itself if unknown."""

        entries = self.blocks[match.group(1)]
        index = int(match.group(2))
        if index < len(entries):
            return entries[index]
        return match.group(0)

    def _lookup_escaped(self, match: re.Match[str]) -> str:
        """Return the escaped user literal for a match."""

        entries = self.blocks[ESCAPED]
        index = int(match.group(1))
        if index < len(entries):
            return entries[index]
        return match.group(0)


def escape_placeholder_shaped_text(text: str, table: PlaceholderTable) -> str:
    """Protect user text that already looks like a generated placeholder."""

    return _PLACEHOLDER_SHAPED_RE.sub(
        lambda match: table.protect(ESCAPED, match.group(0)),
        text,
    )


def protect_fenced_blocks(text: str, table: PlaceholderTable) -> str:
    """Replace triple-backtick fenced blocks with placeholders."""

    return _FENCED_RE.sub(lambda match: table.protect(FENCED, match.group(0)), text)


def protect_markup_blocks(text: str, table: PlaceholderTable) -> str:
    """Replace markup elements with placeholders, innermost elements first.

    Each sweep extracts self-closing tags, void elements and paired elements
    whose body holds no other element of the same name. Repeating the sweep
    peels nesting one level at a time until a sweep finds nothing.
    """

    current = text
    for _ in range(MAX_MARKUP_SWEEPS):
        extracted = table.count(HTML)
        current = _SELF_CLOSING_TAG_RE.sub(
            lambda match: table.protect(HTML, match.group(0)), current
        )
        current = _VOID_TAG_RE.sub(lambda match: table.protect(HTML, match.group(0)), current)
        current = _PAIRED_TAG_RE.sub(
            lambda match: table.protect(HTML, match.group(0)), current
        )
        if table.count(HTML) == extracted:
            break
    return current


def protect_inline_code(text: str, table: PlaceholderTable) -> str:
    """Replace single-line inline code spans, dropping emphasis markers inside."""

    def _protect(match: re.Match[str]) -> str:
        body = match.group(0)[1:-1].replace("*", "")
        return table.protect(INLINE, f"`{body}`")

    return _INLINE_CODE_RE.sub(_protect, text)


def protect_annotations(text: str, table: PlaceholderTable) -> str:
    """Replace `(OOC: ...)` annotation blocks with placeholders, untouched."""

    return _OOC_RE.sub(lambda match: table.protect(OOC, match.group(0)), text)


def protect_literal_regions(text: str, table: PlaceholderTable) -> str:
    """Run all extraction passes in precedence order and return working text."""

    working = escape_placeholder_shaped_text(text, table)
    working = protect_fenced_blocks(working, table)
    working = protect_markup_blocks(working, table)
    working = protect_inline_code(working, table)
    return protect_annotations(working, table)
