# tests/test_dates.py
"""
Tests for hl7_engine.dates.
"""

from datetime import datetime, timezone

import pytest

from hl7_engine.dates import parse_hl7_datetime


def test_full_timestamp_is_naive_local():
    assert parse_hl7_datetime("20230101120530") == datetime(2023, 1, 1, 12, 5, 30)


def test_minute_precision():
    assert parse_hl7_datetime("202301011205") == datetime(2023, 1, 1, 12, 5)


@pytest.mark.parametrize("value", ["20230101120000-0500", "20230101120000-05:00"])
def test_offset_is_converted_to_utc(value):
    parsed = parse_hl7_datetime(value)
    assert parsed == datetime(2023, 1, 1, 17, 0, tzinfo=timezone.utc)
    assert parsed.tzinfo is not None


@pytest.mark.parametrize(
    "value",
    [None, "", "2023", "20230101", "2023010112", "20231301120000", "abc", "2023010112000"],
)
def test_unsupported_values_are_none(value):
    assert parse_hl7_datetime(value) is None


def test_surrounding_whitespace_is_ignored():
    assert parse_hl7_datetime(" 202301011200 ") == datetime(2023, 1, 1, 12, 0)
