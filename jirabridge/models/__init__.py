"""Domain models"""

from jirabridge.models.sync_decision import Authority, RunDirection, SyncDecision, SyncDirection
from jirabridge.models.sync_unit import SyncUnit, UnitContext
from jirabridge.models.work_item import Comment, Identity, ItemState, WorkItem

__all__ = [
    "Authority",
    "Comment",
    "Identity",
    "ItemState",
    "RunDirection",
    "SyncDecision",
    "SyncDirection",
    "SyncUnit",
    "UnitContext",
    "WorkItem",
]
