"""Tests for scrub/seconds/display conversions."""

import math

import pytest

from vidsplice.errors import InvalidInputError
from vidsplice.timecode import (
    UNREADY_DISPLAY,
    is_ready,
    parse_timestamp,
    scrub_display,
    to_display,
    to_scrub,
    to_seconds,
)


class TestToSeconds:
    def test_halfway(self):
        assert to_seconds(50, 125) == 62.5

    def test_bounds(self):
        assert to_seconds(0, 30) == 0
        assert to_seconds(100, 30) == 30


class TestToDisplay:
    def test_golden_value(self):
        assert to_display(62.5) == "1:2:50"

    def test_only_hundredths_are_padded(self):
        assert to_display(125.0625) == "2:5:06"

    def test_zero(self):
        assert to_display(0) == "0:0:00"

    def test_truncates_instead_of_rounding(self):
        assert to_display(59.999) == "0:59:99"

    def test_over_an_hour_stays_in_minutes(self):
        assert to_display(3723.25) == "62:3:25"

    @pytest.mark.parametrize("scrub", [0, 12.5, 33.3, 50, 99.99, 100])
    def test_round_trip_matches_floor_truncation(self, scrub):
        duration = 125.0
        seconds = to_seconds(scrub, duration)
        expected = (
            f"{math.floor(seconds / 60)}:{math.floor(seconds % 60)}:"
            f"{math.floor((seconds % 1) * 100):02d}"
        )
        assert scrub_display(scrub, duration) == expected


class TestUnready:
    @pytest.mark.parametrize("duration", [None, 0, -1.0, float("nan"), float("inf")])
    def test_unready_duration_yields_sentinel(self, duration):
        assert scrub_display(42, duration) == UNREADY_DISPLAY == "0:0:00"

    def test_is_ready(self):
        assert is_ready(1.5)
        assert not is_ready(None)
        assert not is_ready(0)

    def test_to_scrub_unready(self):
        assert to_scrub(3.0, None) == 0.0

    @pytest.mark.parametrize("scrub", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_scrub_yields_sentinel(self, scrub):
        assert scrub_display(scrub, 10.0) == UNREADY_DISPLAY


class TestToScrub:
    def test_inverse(self):
        assert to_scrub(62.5, 125) == 50.0


class TestParseTimestamp:
    def test_plain_seconds(self):
        assert parse_timestamp("62.5") == 62.5

    def test_number(self):
        assert parse_timestamp(5) == 5.0

    def test_display_form(self):
        assert parse_timestamp("1:2:50") == pytest.approx(62.5)

    def test_display_form_single_digit_fraction(self):
        assert parse_timestamp("0:3:5") == pytest.approx(3.5)

    @pytest.mark.parametrize("text", ["abc", "-1", "1:75:00", "", "nan"])
    def test_invalid(self, text):
        with pytest.raises(InvalidInputError):
            parse_timestamp(text)
