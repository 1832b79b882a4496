"""Unit tests for protected-region extraction and restoration."""

from __future__ import annotations

from narrafix.text.placeholders import (
    ESCAPED,
    FENCED,
    HTML,
    INLINE,
    OOC,
    PlaceholderTable,
    protect_inline_code,
    protect_literal_regions,
    protect_markup_blocks,
)


def test_protect_literal_regions_uses_category_tokens() -> None:
    """Each region kind should be replaced by its own placeholder category."""

    table = PlaceholderTable()

    working = protect_literal_regions(
        "a ```x``` b <i>y</i> c `z` d (OOC: w) e __HTML_9__", table
    )

    assert working == (
        "a __FENCED_0__ b __HTML_0__ c __INLINE_0__ d __OOC_0__ e __ESCAPED_0__"
    )
    assert table.count() == 5
    assert table.count(ESCAPED) == 1


def test_protect_markup_blocks_extracts_innermost_elements_first() -> None:
    """Nested same-name elements should be peeled one level per sweep."""

    table = PlaceholderTable()

    working = protect_markup_blocks("<div><div>in</div></div>", table)

    assert working == "__HTML_1__"
    assert table.blocks[HTML] == ["<div>in</div>", "<div>__HTML_0__</div>"]


def test_protect_inline_code_ignores_spans_across_newlines() -> None:
    """Backtick pairs split by a newline are not inline code."""

    table = PlaceholderTable()

    assert protect_inline_code("`a\nb`", table) == "`a\nb`"
    assert table.count(INLINE) == 0


def test_restore_expands_nested_placeholders() -> None:
    """Restoration should expand placeholders found inside restored literals."""

    table = PlaceholderTable()
    fenced = table.protect(FENCED, "```*x*```")
    markup = table.protect(HTML, f"<div>{fenced}</div>")

    assert table.restore(f"[{markup}]") == "[<div>```*x*```</div>]"


def test_restore_keeps_unknown_indices_and_escaped_literals_verbatim() -> None:
    """Out-of-range tokens stay as-is and escaped text is never expanded again."""

    table = PlaceholderTable()
    table.protect(OOC, "(OOC: note)")
    escaped = table.protect(ESCAPED, "__OOC_0__")

    assert table.restore(f"__OOC_5__ {escaped} __OOC_0__") == (
        "__OOC_5__ __OOC_0__ (OOC: note)"
    )


def test_restore_warns_when_pass_cap_is_hit(loguru_messages: list[str]) -> None:
    """A self-referencing table should stop at the pass cap with a warning."""

    table = PlaceholderTable()
    table.protect(HTML, "<b>__HTML_0__</b>")

    restored = table.restore("__HTML_0__")

    assert "__HTML_0__" in restored
    assert any("Placeholder restoration stopped" in message for message in loguru_messages)
