"""
Date helpers shared by the analytics and signal engines.

All datetimes handled by Tradewise are timezone-aware UTC; naive inputs are
assumed to already be in UTC.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional

import pandas as pd


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime or convert an aware one to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parse a date, datetime, Unix timestamp or ISO-8601 string.

    Returns None for missing or unparsable values instead of raising.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, bool) or not isinstance(value, (str, date, int, float)):
        return None
    if isinstance(value, str) and not value.strip():
        return None

    try:
        if isinstance(value, (int, float)):
            # Numeric values are Unix timestamps in seconds
            parsed = pd.to_datetime(value, unit="s", utc=True)
        else:
            parsed = pd.to_datetime(value, utc=True)
    except (ValueError, TypeError, OverflowError):
        return None

    if parsed is None or pd.isna(parsed):
        return None
    return parsed.to_pydatetime()
