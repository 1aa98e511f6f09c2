"""Parsing of sync trigger parameters (HTTP, scheduler, CLI)"""

import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

from jirabridge.models import RunDirection

logger = logging.getLogger(__name__)


def default_since(lookback_days: int, now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now - timedelta(days=lookback_days)


def parse_since(
    value: Union[str, datetime, date, None],
    lookback_days: int = 7,
    now: Optional[datetime] = None,
) -> datetime:
    """ISO date or datetime -> aware UTC datetime.

    Missing or invalid input falls back to `now - lookback_days` rather than
    failing the trigger.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif value is None or not str(value).strip():
        return default_since(lookback_days, now)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            try:
                dt = datetime.combine(date.fromisoformat(text), time.min)
            except ValueError:
                logger.warning(f"Invalid 'since' value {value!r}; using the last {lookback_days} day(s)")
                return default_since(lookback_days, now)

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_direction(value: Union[str, RunDirection, None]) -> RunDirection:
    """`source-to-target` / `target-to-source` / `both`; anything else means both."""
    if isinstance(value, RunDirection):
        return value
    text = (value or "").strip().lower().replace("_", "-")
    try:
        return RunDirection(text)
    except ValueError:
        if text:
            logger.warning(f"Invalid direction {value!r}; syncing both directions")
        return RunDirection.BOTH
