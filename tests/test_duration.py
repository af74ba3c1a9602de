"""Tests for duration parsing."""

from datetime import timedelta

import pytest

from tiny_query import parse_duration


class TestParseDuration:
    """Tests for parse_duration function."""

    def test_milliseconds(self) -> None:
        """Test parsing milliseconds."""
        assert parse_duration("100ms") == 100
        assert parse_duration("0ms") == 0

    def test_seconds_and_minutes(self) -> None:
        """Test parsing seconds and minutes."""
        assert parse_duration("30s") == 30_000
        assert parse_duration("5m") == 300_000

    def test_hours_and_days(self) -> None:
        """Test parsing hours and days."""
        assert parse_duration("2h") == 7_200_000
        assert parse_duration("1d") == 86_400_000

    def test_integer_passthrough(self) -> None:
        """Test that integers pass through as milliseconds."""
        assert parse_duration(1000) == 1000
        assert parse_duration(0) == 0

    def test_timedelta(self) -> None:
        """Test that timedeltas convert to milliseconds."""
        assert parse_duration(timedelta(seconds=1.5)) == 1500
        assert parse_duration(timedelta(minutes=2)) == 120_000

    def test_none_uses_default(self) -> None:
        """Test that None falls back to the default."""
        assert parse_duration(None) == 0
        assert parse_duration(None, 5000) == 5000

    def test_invalid_format(self) -> None:
        """Test that invalid formats raise ValueError."""
        for value in ("invalid", "10x", "s10", "", "10"):
            with pytest.raises(ValueError, match="Invalid duration"):
                parse_duration(value)

    def test_negative_rejected(self) -> None:
        """Test that negative durations raise ValueError."""
        with pytest.raises(ValueError, match="negative"):
            parse_duration(-1)

        with pytest.raises(ValueError, match="negative"):
            parse_duration(timedelta(seconds=-1))
