"""Per-item sync direction from update timestamps"""

import logging
import re
from datetime import datetime, timezone
from typing import Optional, Union

from jirabridge.models import Authority, SyncDecision, SyncDirection

logger = logging.getLogger(__name__)

Timestamp = Union[str, datetime, None]

DEFAULT_TOLERANCE_SECONDS = 60

# Jira emits offsets without a colon (2024-05-01T10:00:00.000+0000).
_COMPACT_OFFSET_RE = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_timestamp(value: Timestamp) -> Optional[datetime]:
    """Parse GitHub/Jira timestamps into aware UTC datetimes; None if unparseable."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _COMPACT_OFFSET_RE.sub(r"\1:\2", text)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


class TimestampArbiter:
    """Decides which side is authoritative for an item pair.

    Jira wins by default: it is where triage happens (assignment, closing),
    so near-simultaneous edits must not let GitHub overwrite them. GitHub
    only wins when both timestamps parse and it is newer by more than the
    tolerance.
    """

    def __init__(self, tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS):
        self.tolerance_seconds = tolerance_seconds

    def decide(self, source_updated_at: Timestamp, target_updated_at: Timestamp) -> Authority:
        source_dt = parse_timestamp(source_updated_at)
        target_dt = parse_timestamp(target_updated_at)
        if source_dt is None or target_dt is None:
            logger.debug(
                f"Unusable timestamp (source={source_updated_at!r}, target={target_updated_at!r}); Jira wins"
            )
            return Authority.TARGET
        delta = (source_dt - target_dt).total_seconds()
        if abs(delta) <= self.tolerance_seconds:
            return Authority.TARGET
        return Authority.SOURCE if delta > 0 else Authority.TARGET

    def should_sync_from_source(self, source_updated_at: Timestamp, target_updated_at: Timestamp) -> bool:
        return self.decide(source_updated_at, target_updated_at) == Authority.SOURCE

    def should_sync_from_target(self, source_updated_at: Timestamp, target_updated_at: Timestamp) -> bool:
        return self.decide(source_updated_at, target_updated_at) == Authority.TARGET

    def decision(self, source_updated_at: Timestamp, target_updated_at: Timestamp) -> SyncDecision:
        authority = self.decide(source_updated_at, target_updated_at)
        direction = (
            SyncDirection.SOURCE_TO_TARGET
            if authority == Authority.SOURCE
            else SyncDirection.TARGET_TO_SOURCE
        )
        return SyncDecision(
            direction=direction,
            source_updated_at=None if source_updated_at is None else str(source_updated_at),
            target_updated_at=None if target_updated_at is None else str(target_updated_at),
        )
