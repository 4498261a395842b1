"""Shared parsing helpers for settings and command-line value normalization."""

from __future__ import annotations


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


def parse_key_value_argument(argument: str) -> tuple[str, str] | None:
    """Split a `key=value` argument and strip one layer of matching quotes.

    Returns:
        `(key, value)` tuple, or `None` when the argument has no `=` or a blank key.
    """

    if "=" not in argument:
        return None
    raw_key, raw_value = argument.split("=", 1)
    key = raw_key.strip()
    if not key:
        return None
    value = raw_value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {"'", '"'}:
        value = value[1:-1]
    return key, value
