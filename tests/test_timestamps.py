import logging
from datetime import datetime, timezone

import pytest

from leetstreak.bot.services.timestamps import resolve_timestamp

NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


def test_ten_digit_value_is_seconds():
    assert resolve_timestamp("1710500000", now=NOW) == datetime.fromtimestamp(1710500000, tz=timezone.utc)


def test_thirteen_digit_value_is_milliseconds():
    seconds = resolve_timestamp(1710500000, now=NOW)
    millis = resolve_timestamp("1710500000000", now=NOW)

    assert millis == seconds


def test_iso_string_with_zulu_suffix():
    assert resolve_timestamp("2024-03-14T08:30:00Z", now=NOW) == datetime(
        2024, 3, 14, 8, 30, tzinfo=timezone.utc
    )


def test_naive_iso_string_is_read_as_utc():
    resolved = resolve_timestamp("2024-03-14T08:30:00", now=NOW)

    assert resolved.tzinfo is not None
    assert resolved == datetime(2024, 3, 14, 8, 30, tzinfo=timezone.utc)


def test_garbage_falls_back_to_now_with_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="leetstreak.bot.services.timestamps"):
        resolved = resolve_timestamp("not-a-date", now=NOW)

    assert resolved == NOW
    assert "Invalid timestamp format" in caplog.text


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_missing_timestamp_falls_back_to_now(raw):
    assert resolve_timestamp(raw, now=NOW) == NOW


def test_default_now_is_aware():
    assert resolve_timestamp(None).tzinfo is not None


@pytest.mark.parametrize("raw", ["1710500000.5", "1710500000000.0", 1710500000.75])
def test_fractional_values_are_truncated_to_the_second(raw):
    assert resolve_timestamp(raw, now=NOW) == datetime.fromtimestamp(1710500000, tz=timezone.utc)
