"""Tests for scope set arithmetic."""

from google_mcp.auth.scopes import (
    DEFAULT_SCOPES,
    GMAIL_READONLY_SCOPE,
    GMAIL_SEND_SCOPE,
    compare,
    format_scopes,
    is_satisfied,
    parse_scopes,
    scope_labels,
    union,
)


class TestParseScopes:
    """Tests for parse_scopes."""

    def test_space_separated_wire_format(self) -> None:
        """Token responses use space separated scopes."""
        assert parse_scopes("read write") == frozenset({"read", "write"})

    def test_comma_separated_env_format(self) -> None:
        """Environment variables may use commas."""
        assert parse_scopes("read, write,admin") == frozenset({"read", "write", "admin"})

    def test_iterable_input(self) -> None:
        """Any iterable is accepted and blanks are dropped."""
        assert parse_scopes(["read", " ", "", "write "]) == frozenset({"read", "write"})

    def test_none_is_empty(self) -> None:
        """None parses to the empty set."""
        assert parse_scopes(None) == frozenset()

    def test_duplicates_collapse(self) -> None:
        """Scope sets have no duplicates."""
        assert parse_scopes("read read") == frozenset({"read"})


class TestScopeSetOperations:
    """Tests for union, is_satisfied and compare."""

    def test_union_contains_both(self) -> None:
        """Union never drops a granted scope."""
        assert union({"read"}, {"write"}) == frozenset({"read", "write"})

    def test_satisfied_when_subset(self) -> None:
        """Requested scopes that were all granted are satisfied."""
        assert is_satisfied({"read", "write"}, {"read"})

    def test_not_satisfied_when_missing(self) -> None:
        """A single missing scope means not satisfied."""
        assert not is_satisfied({"read"}, {"read", "write"})

    def test_empty_request_always_satisfied(self) -> None:
        """Requesting nothing is satisfied by anything."""
        assert is_satisfied(frozenset(), frozenset())

    def test_exact_string_matching_only(self) -> None:
        """No hierarchy inference: modify does not imply readonly."""
        granted = {"https://www.googleapis.com/auth/gmail.modify"}
        assert not is_satisfied(granted, {GMAIL_READONLY_SCOPE})

    def test_compare_reports_missing_and_extra(self) -> None:
        """compare() reports both directions of the difference."""
        result = compare(granted={"read", "admin"}, required={"read", "write"})
        assert result.missing == frozenset({"write"})
        assert result.extra == frozenset({"admin"})


class TestFormatting:
    """Tests for format_scopes and scope_labels."""

    def test_format_is_sorted_and_space_separated(self) -> None:
        """Wire format is deterministic."""
        assert format_scopes({"b", "a", "c"}) == "a b c"

    def test_labels_strip_google_prefix(self) -> None:
        """Labels are the short scope names."""
        assert scope_labels({GMAIL_SEND_SCOPE, GMAIL_READONLY_SCOPE}) == [
            "gmail.readonly",
            "gmail.send",
        ]

    def test_default_scopes_cover_calendar_and_gmail(self) -> None:
        """Default scopes include both calendar and gmail scopes."""
        labels = scope_labels(DEFAULT_SCOPES)
        assert "calendar" in labels
        assert "gmail.readonly" in labels
