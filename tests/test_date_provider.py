from datetime import date, datetime, timezone

from leetstreak.shared.date_provider import FixedDateProvider


def test_today_follows_the_configured_timezone():
    instant = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)

    assert FixedDateProvider(instant).today() == date(2024, 3, 15)
    assert FixedDateProvider(instant, "Asia/Tokyo").today() == date(2024, 3, 16)
    assert FixedDateProvider(instant, "Asia/Tokyo").utcnow() == instant


def test_yesterday_and_day_window():
    provider = FixedDateProvider(datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc))

    assert provider.yesterday() == date(2024, 2, 29)
    assert provider.day_window(date(2024, 2, 29)) == (date(2024, 2, 29), date(2024, 3, 1))
