"""Tests for value helpers.

Tests the core utility functions:
- is_null_value: Check if a raw value means "not found"
- comparison_key: Decide whether two candidates agree
- truncate: Shorten text for logs
"""

from vsme_assistant.core.value_helpers import comparison_key, is_null_value, truncate


# =============================================================================
# is_null_value tests
# =============================================================================


class TestIsNullValue:
    """Tests for is_null_value function."""

    def test_none_is_null(self):
        assert is_null_value(None) is True

    def test_sentinels_are_null(self):
        """Sentinel strings count regardless of case and padding."""
        for sentinel in ("NOT_FOUND", "null", "  ", "N/A", "None"):
            assert is_null_value(sentinel) is True

    def test_zero_is_a_value(self):
        """0 is a real reading, not a missing one."""
        assert is_null_value(0) is False
        assert is_null_value(False) is False

    def test_text_is_a_value(self):
        assert is_null_value("Acme Ltd") is False


# =============================================================================
# comparison_key tests
# =============================================================================


class TestComparisonKey:
    """Tests for candidate agreement."""

    def test_case_and_whitespace_ignored(self):
        assert comparison_key("Acme  Ltd") == comparison_key("acme ltd")

    def test_formatting_is_not_ignored(self):
        """'1,200' and '1200' differ: treating them as equal would be a conversion."""
        assert comparison_key("1,200") != comparison_key("1200")

    def test_integral_float_matches_int(self):
        assert comparison_key(85.0) == comparison_key(85)
        assert comparison_key(85.0) == "85"

    def test_bool(self):
        assert comparison_key(True) == "true"


def test_truncate():
    assert truncate("short") == "short"
    assert truncate("x" * 300, limit=10) == "xxxxxxx..."
