"""Value helpers for extracted data.

These utilities compare and inspect raw values without ever converting them:
the pipeline must not "fix" a number.
"""

from typing import Any

NULL_SENTINELS = frozenset({"", "not_found", "null", "none", "n/a"})
"""Strings models use to say "not found" instead of returning null."""


def is_null_value(value: Any) -> bool:
    """Check if a raw value means "not found".

    Handles:
    1. None - explicitly missing
    2. "NOT_FOUND", "null", "" and similar sentinel strings
    """
    if value is None:
        return True
    if isinstance(value, str) and value.strip().lower() in NULL_SENTINELS:
        return True
    return False


def is_scalar(value: Any) -> bool:
    """Check if a value fits a form field (str, number, bool)."""
    return isinstance(value, (str, int, float, bool))


def comparison_key(value: Any) -> str:
    """Key used to decide whether two candidates agree.

    Only whitespace and case are ignored. "1,200" and "1200" are different
    values: deciding they are the same number would be a conversion.
    """
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return " ".join(str(value).split()).casefold()


def truncate(text: str, limit: int = 200) -> str:
    """Shorten text for logs and audit records."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
