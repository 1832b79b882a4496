"""Balanced markup block extraction.

Responsibilities:
- Replace complete markup blocks with `<!--HTML_PLACEHOLDER_n-->` comments.
- Restore extracted blocks verbatim after surrounding text was processed.

Key public functions:
- `extract_markup_blocks`: left-to-right balanced-tag scanner.
- `restore_markup_blocks`: inverse substitution of placeholder comments.
"""

from __future__ import annotations

import re


VOID_ELEMENTS = frozenset(
    {
        "area",
        "base",
        "br",
        "col",
        "embed",
        "hr",
        "img",
        "input",
        "link",
        "meta",
        "source",
        "track",
        "wbr",
    }
)

PLACEHOLDER_RE = re.compile(r"<!--HTML_PLACEHOLDER_(\d+)-->")
# A placeholder comment already present in the input is treated as a block of its own.
_BLOCK_START_RE = re.compile(
    r"(?P<reserved><!--HTML_PLACEHOLDER_\d+-->)|<(?P<tag>[a-zA-Z][a-zA-Z0-9]*)\b[^>]*>"
)


def placeholder_for(index: int) -> str:
    """Return the placeholder comment token for block `index`."""

    return f"<!--HTML_PLACEHOLDER_{index}-->"


def find_matching_close(text: str, start: int, tag_name: str) -> int | None:
    """Return the end offset of the close tag balancing an open tag ending at `start`.

    Only tags with the same name move the depth counter; self-closing forms of
    that name do not. Returns `None` when the element is never closed.
    """

    escaped = re.escape(tag_name)
    open_re = re.compile(rf"<{escaped}\b[^>]*>", re.IGNORECASE)
    close_re = re.compile(rf"</{escaped}\s*>", re.IGNORECASE)

    depth = 1
    position = start
    while depth > 0 and position < len(text):
        next_close = close_re.search(text, position)
        if next_close is None:
            return None

        next_open = open_re.search(text, position)
        while next_open is not None and next_open.group(0).endswith("/>"):
            next_open = open_re.search(text, next_open.end())

        if next_open is None or next_close.start() < next_open.start():
            depth -= 1
            position = next_close.end()
        else:
            depth += 1
            position = next_open.end()

    return position if depth == 0 else None


def extract_markup_blocks(text: str, sink: list[str]) -> str:
    """Replace every complete markup block in `text` with a placeholder comment.

    Extracted blocks are appended to `sink` in discovery order, and the n-th
    block is replaced by `<!--HTML_PLACEHOLDER_n-->` where n counts entries in
    `sink`. Self-closing tags and void elements become single blocks. An
    opening tag without a matching close tag is left in place.
    """

    result = text
    cursor = 0
    while cursor < len(result):
        match = _BLOCK_START_RE.search(result, cursor)
        if match is None:
            break

        block_start = match.start()
        tag_end = match.end()
        tag_name = match.group("tag")

        if match.group("reserved") is not None or match.group(0).endswith("/>"):
            block_end: int | None = tag_end
        elif tag_name.lower() in VOID_ELEMENTS:
            block_end = tag_end
        else:
            block_end = find_matching_close(result, tag_end, tag_name)

        if block_end is None:
            cursor = tag_end
            continue

        sink.append(result[block_start:block_end])
        token = placeholder_for(len(sink) - 1)
        result = result[:block_start] + token + result[block_end:]
        cursor = block_start + len(token)

    return result


def restore_markup_blocks(text: str, blocks: list[str]) -> str:
    """Substitute placeholder comments with their blocks; unknown indices stay as-is."""

    def _restore(match: re.Match[str]) -> str:
        index = int(match.group(1))
        if index < len(blocks):
            return blocks[index]
        return match.group(0)

    return PLACEHOLDER_RE.sub(_restore, text)
