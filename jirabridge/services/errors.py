"""Error taxonomy and the process-wide error collector"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class SyncError(Exception):
    """Base class for errors raised by the reconciliation engine."""

    hint: Optional[str] = None

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientError(SyncError):
    """Rate limiting or 5xx that outlived the retry ceiling."""


class RateLimitExceeded(TransientError):
    """Rate-limit signals persisted past the retry ceiling."""


class NotFoundError(SyncError):
    """A referenced item is gone (404)."""


class PermissionDeniedError(SyncError):
    """The configured credentials may not see or change an item (401/403)."""

    hint = "check that the token has access to this project/repository"


class DataError(SyncError):
    """Missing or malformed data on an otherwise valid item."""


class FieldTranslationError(DataError):
    """An item could not be translated into the other tracker's fields."""


class StructuralError(SyncError):
    """An API response did not have the expected shape."""


@dataclass
class CollectedError:
    context: str
    message: str
    error_type: str
    unit: Optional[str] = None
    hint: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "context": self.context,
            "message": self.message,
            "error_type": self.error_type,
            "unit": self.unit,
            "hint": self.hint,
            "created_at": self.created_at.isoformat(),
        }


class ErrorCollector:
    """Accumulates errors across all units of one run.

    Cleared at the start of each run (not per unit) so the final report
    spans every unit.
    """

    def __init__(self):
        self.errors: List[CollectedError] = []
        self.current_unit: Optional[str] = None

    def clear(self):
        self.errors = []
        self.current_unit = None

    def add_error(self, context: str, error: BaseException):
        hint = getattr(error, "hint", None)
        entry = CollectedError(
            context=context,
            message=str(error) or error.__class__.__name__,
            error_type=error.__class__.__name__,
            unit=self.current_unit,
            hint=hint,
        )
        self.errors.append(entry)
        suffix = f" (hint: {hint})" if hint else ""
        logger.error(f"{context}: {entry.message}{suffix}")

    def for_unit(self, unit: Optional[str]) -> List[CollectedError]:
        return [e for e in self.errors if e.unit == unit]

    def flush_unit(self, unit: Optional[str]) -> int:
        """Log a report of the errors recorded for one unit; returns their count."""
        entries = self.for_unit(unit)
        if not entries:
            logger.info(f"Unit {unit}: completed without errors")
            return 0
        logger.warning(f"Unit {unit}: {len(entries)} error(s) during sync")
        for i, entry in enumerate(entries, start=1):
            logger.warning(f"  {i}. [{entry.error_type}] {entry.context}: {entry.message}")
        return len(entries)

    def report(self) -> List[Dict[str, Any]]:
        return [e.as_dict() for e in self.errors]

    def __len__(self):
        return len(self.errors)


# Global collector instance
error_collector = ErrorCollector()
