"""Unit tests for recurrence rule interpretation."""

import pytest

from cleanslate.core.recurrence_parser import get_recurrence_interval_days, parse_rule_parts, rule_to_human


@pytest.mark.unit
class TestGetRecurrenceIntervalDays:
    """Tests for get_recurrence_interval_days function."""

    @pytest.mark.parametrize(
        ("rule", "expected"),
        [
            ("FREQ=WEEKLY", 7),
            ("RRULE:FREQ=WEEKLY", 7),
            ("freq=weekly;interval=1", 7),
            ("FREQ=WEEKLY;INTERVAL=2", 14),
            ("RRULE:INTERVAL=2;FREQ=WEEKLY;BYDAY=MO", 14),
        ],
    )
    def test_weekly_rules(self, rule, expected):
        """Test weekly cadences map to day intervals."""
        assert get_recurrence_interval_days(rule) == expected

    @pytest.mark.parametrize(
        "rule",
        [None, "", "FREQ=DAILY", "FREQ=MONTHLY", "FREQ=WEEKLY;INTERVAL=3", "FREQ=WEEKLY;INTERVAL=x", "every week"],
    )
    def test_non_recurring_rules(self, rule):
        """Test anything else means no recurrence."""
        assert get_recurrence_interval_days(rule) is None


@pytest.mark.unit
class TestRuleHelpers:
    """Tests for parse_rule_parts and rule_to_human."""

    def test_parse_rule_parts_ignores_malformed_segments(self):
        """Test malformed segments are dropped."""
        assert parse_rule_parts("FREQ=WEEKLY;;garbage;INTERVAL=2") == {"FREQ": "WEEKLY", "INTERVAL": "2"}

    def test_rule_to_human(self):
        """Test human-readable descriptions."""
        assert rule_to_human("FREQ=WEEKLY") == "weekly"
        assert rule_to_human("FREQ=WEEKLY;INTERVAL=2") == "every 2 weeks"
        assert rule_to_human(None) == "does not repeat"
