"""Normalization of submission timestamps."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)

# Largest value still read as Unix seconds; anything bigger is milliseconds.
MAX_SECONDS_TIMESTAMP = 9_999_999_999


def resolve_timestamp(
    raw: Union[str, int, float, None],
    now: Optional[datetime] = None
) -> datetime:
    """Turn a raw submission timestamp into an aware datetime.

    Numbers (or numeric strings, fractions truncated) are Unix time in
    seconds, or milliseconds when their magnitude exceeds
    ``MAX_SECONDS_TIMESTAMP``. Anything else is tried as an ISO-8601
    string. Absent or unparseable input falls back to the current instant.
    This never raises.

    Args:
        raw: Timestamp as received from the submission source
        now: Fallback instant, defaults to the current UTC time

    Returns:
        datetime: Timezone-aware instant
    """
    if now is None:
        now = datetime.now(timezone.utc)

    if raw is None or (isinstance(raw, str) and not raw.strip()):
        logger.warning("Submission has no timestamp, using current time")
        return now

    number = _as_integer(raw)
    if number is not None:
        try:
            if abs(number) > MAX_SECONDS_TIMESTAMP:
                return datetime.fromtimestamp(number / 1000, tz=timezone.utc)
            return datetime.fromtimestamp(number, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            pass

    if isinstance(raw, str):
        try:
            parsed = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        except ValueError:
            pass

    logger.warning(f"Invalid timestamp format: {raw!r}, using current time")
    return now


def _as_integer(raw: Union[str, int, float]) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    try:
        if isinstance(raw, float):
            return int(raw)
        text = raw.strip()
        try:
            return int(text)
        except ValueError:
            return int(float(text))
    except (ValueError, OverflowError):
        return None
