"""Shared parsing helpers for configuration and chat-file value normalization."""

from __future__ import annotations


_TRUE_BOOLEAN_TOKENS = frozenset({"1", "true", "yes", "on"})
_FALSE_BOOLEAN_TOKENS = frozenset({"0", "false", "no", "off"})


def normalize_optional_string(value: object) -> str | None:
    """Normalize an optional value to a stripped non-empty string.

    Args:
        value: Arbitrary input value.

    Returns:
        Stripped string value, or `None` when the value is empty after trimming.
    """

    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return text


def parse_permissive_boolean(value: object) -> bool | None:
    """Parse a permissive boolean token and return `None` for invalid values."""

    if isinstance(value, bool):
        return value

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None

    token = normalized.lower()
    if token in _TRUE_BOOLEAN_TOKENS:
        return True
    if token in _FALSE_BOOLEAN_TOKENS:
        return False
    return None


def parse_name_list(value: object) -> tuple[str, ...]:
    """Parse a comma-separated string or a sequence into trimmed non-empty names.

    Blank entries are dropped and the original order is kept, so `"eval, ,fetch"`
    yields `("eval", "fetch")`.
    """

    if value is None:
        return ()
    if isinstance(value, str):
        raw_items: list[object] = list(value.split(","))
    elif isinstance(value, (list, tuple)):
        raw_items = list(value)
    else:
        raise ValueError("Expected a comma-separated string or a list of names.")

    names: list[str] = []
    for item in raw_items:
        normalized = normalize_optional_string(item)
        if normalized is not None:
            names.append(normalized)
    return tuple(names)
