"""
Unit tests for maxspeed parsing and road class default limits.
Tests pure functions from speedlimit/limits.py.
"""

import pytest

from speedlimit.limits import parse_maxspeed, default_limit_for


class TestParseMaxspeed:
    """Tests for OSM maxspeed attribute parsing."""

    @pytest.mark.unit
    def test_plain_number(self):
        assert parse_maxspeed("50") == 50

    @pytest.mark.unit
    def test_unit_suffix_ignored(self):
        assert parse_maxspeed("50 km/h") == 50

    @pytest.mark.unit
    def test_mph_suffix_not_converted(self):
        """Only the leading integer is read, no unit conversion."""
        assert parse_maxspeed("30 mph") == 30

    @pytest.mark.unit
    def test_surrounding_whitespace(self):
        assert parse_maxspeed("  70\n") == 70

    @pytest.mark.unit
    @pytest.mark.parametrize("raw", ["signals", "walk", "none", "RU:urban", ""])
    def test_non_numeric_is_none(self, raw):
        assert parse_maxspeed(raw) is None

    @pytest.mark.unit
    def test_none_is_none(self):
        assert parse_maxspeed(None) is None

    @pytest.mark.unit
    def test_integer_column_value(self):
        """SQLite INTEGER columns arrive as int."""
        assert parse_maxspeed(90) == 90

    @pytest.mark.unit
    def test_real_column_value(self):
        assert parse_maxspeed(82.5) == 82

    @pytest.mark.unit
    def test_multiple_values_takes_first(self):
        assert parse_maxspeed("50;30") == 50


class TestDefaultLimit:
    """Tests for highway class fallback limits."""

    @pytest.mark.unit
    @pytest.mark.parametrize("road_class,expected", [
        ("motorway", 120),
        ("trunk", 90),
        ("primary", 90),
        ("secondary", 80),
        ("tertiary", 50),
        ("residential", 50),
    ])
    def test_known_classes(self, road_class, expected):
        assert default_limit_for(road_class) == expected

    @pytest.mark.unit
    @pytest.mark.parametrize("road_class", ["unknown_tag", "service", "motorway_link", ""])
    def test_unrecognised_class_falls_back(self, road_class):
        assert default_limit_for(road_class) == 50

    @pytest.mark.unit
    def test_none_falls_back(self):
        assert default_limit_for(None) == 50
