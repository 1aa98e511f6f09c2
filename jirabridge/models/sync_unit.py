"""Repository/component unit and per-unit context"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Set

from jirabridge.models.sync_decision import RunDirection
from jirabridge.models.work_item import WorkItem


@dataclass(frozen=True)
class SyncUnit:
    """One repository/component pair reconciled as a unit"""

    repository: str  # owner/repo
    component: str

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repository.split("/", 1)[1]

    def __str__(self):
        return f"{self.repository} <-> {self.component}"


def _empty_stats() -> Dict[str, int]:
    return {
        "created": 0,
        "updated": 0,
        "relinked": 0,
        "skipped": 0,
        "skipped_inaccessible": 0,
        "comments_added": 0,
        "children_closed": 0,
        "transitions": 0,
        "source_updates": 0,
        "source_created": 0,
        "duplicates": 0,
        "errors": 0,
    }


@dataclass
class UnitContext:
    """State that lives for exactly one unit's pass.

    Holds the Target items already fetched for the unit's component so the
    identity matcher can resolve links without a query per item.
    """

    unit: SyncUnit
    since: Optional[datetime] = None
    direction: RunDirection = RunDirection.BOTH
    target_items: List[WorkItem] = field(default_factory=list)
    components: Optional[Set[str]] = None
    processed_keys: Set[str] = field(default_factory=set)
    stats: Dict[str, int] = field(default_factory=_empty_stats)

    def remember(self, item: WorkItem):
        """Make an item created or fetched mid-pass visible to later lookups."""
        if not any(existing.id == item.id for existing in self.target_items):
            self.target_items.append(item)

    def bump(self, key: str, amount: int = 1):
        self.stats[key] = self.stats.get(key, 0) + amount
