"""Sync direction and decision types"""

import enum
from dataclasses import dataclass
from typing import Optional


class SyncDirection(str, enum.Enum):
    """Direction a single item pair is synced in during one pass"""

    SOURCE_TO_TARGET = "source_to_target"
    TARGET_TO_SOURCE = "target_to_source"
    NONE = "none"


class Authority(str, enum.Enum):
    """Which side is authoritative for an item pair"""

    SOURCE = "source"
    TARGET = "target"


class RunDirection(str, enum.Enum):
    """Direction selector for a whole batch run"""

    SOURCE_TO_TARGET = "source-to-target"
    TARGET_TO_SOURCE = "target-to-source"
    BOTH = "both"

    @property
    def includes_source_to_target(self) -> bool:
        return self in (RunDirection.SOURCE_TO_TARGET, RunDirection.BOTH)

    @property
    def includes_target_to_source(self) -> bool:
        return self in (RunDirection.TARGET_TO_SOURCE, RunDirection.BOTH)


@dataclass(frozen=True)
class SyncDecision:
    direction: SyncDirection
    source_updated_at: Optional[str] = None
    target_updated_at: Optional[str] = None

    @property
    def from_source(self) -> bool:
        return self.direction == SyncDirection.SOURCE_TO_TARGET

    @property
    def from_target(self) -> bool:
        return self.direction == SyncDirection.TARGET_TO_SOURCE
