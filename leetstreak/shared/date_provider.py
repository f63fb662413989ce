"""Date and time source used for day buckets.

All "what day is it" decisions go through a DateProvider so the guild-wide
notion of today follows the configured timezone and tests can pin the clock.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo


class DateProvider:
    """Wall-clock provider bound to one timezone."""

    def __init__(self, tz_name: str = "UTC"):
        self._tz = ZoneInfo(tz_name)

    @property
    def tzinfo(self) -> ZoneInfo:
        return self._tz

    def now(self) -> datetime:
        """Current instant, aware, in the provider's timezone."""
        return datetime.now(self._tz)

    def utcnow(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()

    def yesterday(self) -> date:
        return self.today() - timedelta(days=1)

    def day_window(self, day: date) -> tuple[date, date]:
        """Half-open ``[day, day + 1)`` bucket for a calendar day."""
        return day, day + timedelta(days=1)


class FixedDateProvider(DateProvider):
    """Provider pinned to a given instant, used by tests and backfills."""

    def __init__(self, fixed: datetime, tz_name: str = "UTC"):
        super().__init__(tz_name)
        if fixed.tzinfo is None:
            fixed = fixed.replace(tzinfo=self.tzinfo)
        self._fixed = fixed

    def now(self) -> datetime:
        return self._fixed.astimezone(self.tzinfo)

    def utcnow(self) -> datetime:
        return self._fixed.astimezone(timezone.utc)


_date_provider: Optional[DateProvider] = None


def get_date_provider() -> DateProvider:
    """Get the process-wide provider, built from settings on first use."""
    global _date_provider
    if _date_provider is None:
        from leetstreak.shared.config import get_settings

        _date_provider = DateProvider(get_settings().timezone)
    return _date_provider


def set_date_provider(provider: Optional[DateProvider]) -> None:
    global _date_provider
    _date_provider = provider
