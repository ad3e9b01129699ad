"""Tests for time formatting, parsing and frame-grid helpers."""

import pytest

from clipsplice.timefmt import (
    format_time,
    format_time_precise,
    fraction_to_time,
    frame_index_at,
    frame_time,
    parse_time,
    time_to_fraction,
)


class TestFormatTime:
    def test_zero(self):
        assert format_time(0) == "00:00"

    def test_minutes_and_seconds(self):
        assert format_time(75) == "01:15"

    def test_negative_clamps(self):
        assert format_time(-3) == "00:00"

    def test_rounds_half_up(self):
        assert format_time(59.9995) == "01:00"


class TestFormatTimePrecise:
    def test_millis(self):
        assert format_time_precise(4.25) == "00:04.250"

    def test_half_up(self):
        assert format_time_precise(1.2345) == "00:01.235"

    def test_over_a_minute(self):
        assert format_time_precise(61.5) == "01:01.500"


class TestParseTime:
    def test_number(self):
        assert parse_time(4) == 4.0

    def test_numeric_string(self):
        assert parse_time("2.5") == 2.5

    def test_mm_ss(self):
        assert parse_time("01:30") == 90.0

    def test_hh_mm_ss_fraction(self):
        assert parse_time("01:00:01.5") == pytest.approx(3601.5)

    def test_garbage_raises(self):
        with pytest.raises(ValueError, match="Invalid timestamp"):
            parse_time("ten")

    def test_empty_part_raises(self):
        with pytest.raises(ValueError, match="Invalid timestamp"):
            parse_time("01:")

    def test_negative_raises(self):
        with pytest.raises(ValueError, match=">= 0"):
            parse_time(-1)


class TestTimelineFractions:
    def test_fraction_maps_linearly(self):
        assert fraction_to_time(0.25, 10) == 2.5

    def test_fraction_clamps(self):
        assert fraction_to_time(-0.5, 10) == 0.0
        assert fraction_to_time(1.5, 10) == 10.0

    def test_inverse(self):
        assert time_to_fraction(2.5, 10) == 0.25

    def test_zero_duration(self):
        assert time_to_fraction(3, 0) == 0.0


class TestFrameGrid:
    def test_exact_frame(self):
        assert frame_index_at(2.0, 10) == 20

    def test_between_frames_rounds_up(self):
        assert frame_index_at(0.25, 10) == 3

    def test_float_noise_does_not_skip(self):
        # 0.3 * 10 is 3.0000000000000004 in binary floating point.
        assert frame_index_at(0.3, 10) == 3

    def test_negative_clamps_to_zero(self):
        assert frame_index_at(-1, 10) == 0

    def test_frame_time(self):
        assert frame_time(25, 10) == 2.5
