"""Message rendering around untouched markup blocks.

Responsibilities:
- Run plain-text stretches of a message through a host-supplied formatter.
- Keep markup blocks out of the formatter and restore them verbatim.
- Optionally unwrap fenced code blocks that only carry markup.
"""

from __future__ import annotations

from collections.abc import Callable
import html
import re

from .blocks import PLACEHOLDER_RE, extract_markup_blocks, restore_markup_blocks


NarrativeFormatter = Callable[[str], str]

_EMPHASIS_RE = re.compile(r"(?<!\w)\*([^*\n]+?)\*(?!\w)")
_MARKUP_FENCE_RE = re.compile(r"```(?P<info>[a-zA-Z]*)[ \t]*\n(?P<body>[\s\S]*?)\n?```")
_MARKUP_FENCE_LANGUAGES = frozenset({"", "html", "xml"})


def format_narrative_html(text: str) -> str:
    """Escape plain text and render emphasis and line breaks as HTML."""

    escaped = html.escape(text, quote=False)
    escaped = _EMPHASIS_RE.sub(r"<em>\1</em>", escaped)
    return escaped.replace("\n", "<br>")


def unwrap_markup_code_blocks(text: str) -> str:
    """Replace fenced blocks that contain markup with their raw body.

    Only fences tagged `html`, `xml` or untagged are unwrapped, and only when
    the body starts with a tag.
    """

    def _unwrap(match: re.Match[str]) -> str:
        info = match.group("info").lower()
        body = match.group("body")
        if info in _MARKUP_FENCE_LANGUAGES and body.lstrip().startswith("<"):
            return body
        return match.group(0)

    return _MARKUP_FENCE_RE.sub(_unwrap, text)


def render_with_markup(
    text: str,
    formatter: NarrativeFormatter = format_narrative_html,
    include_code_blocks: bool = False,
) -> str:
    """Format every plain-text stretch of `text` while keeping markup untouched.

    Args:
        text: Message text mixing prose and markup.
        formatter: Host formatter applied to each non-empty plain-text stretch.
        include_code_blocks: Unwrap markup-only fenced blocks before rendering.

    Returns:
        Formatted text with every markup block restored in place.
    """

    if include_code_blocks:
        text = unwrap_markup_code_blocks(text)

    blocks: list[str] = []
    with_placeholders = extract_markup_blocks(text, blocks)

    pieces: list[str] = []
    last_index = 0
    for match in PLACEHOLDER_RE.finditer(with_placeholders):
        before = with_placeholders[last_index : match.start()]
        if before:
            pieces.append(formatter(before))
        pieces.append(match.group(0))
        last_index = match.end()
    remaining = with_placeholders[last_index:]
    if remaining:
        pieces.append(formatter(remaining))

    return restore_markup_blocks("".join(pieces), blocks)
