"""System-agnostic work item model"""

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Set


class ItemState(str, enum.Enum):
    """Coarse open/closed state shared by both trackers"""

    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class Identity:
    """An account on one of the trackers."""

    login: str
    display_name: Optional[str] = None


@dataclass
class Comment:
    body: str
    author: Optional[Identity] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    # Unique per comment; the cross-system dedup key.
    url: Optional[str] = None
    id: Optional[str] = None


@dataclass
class WorkItem:
    """An issue as seen by the reconciliation engine.

    `id` is system-local: the issue number on the Source side, the issue key on
    the Target side. `url` is globally unique and is what the Target embeds in
    its description to point back at the Source item.
    """

    id: str
    title: str
    body: str = ""
    state: ItemState = ItemState.OPEN
    kind: Optional[str] = None
    kind_id: Optional[str] = None
    labels: Set[str] = field(default_factory=set)
    assignees: List[Identity] = field(default_factory=list)
    author: Optional[Identity] = None
    updated_at: Optional[str] = None
    url: str = ""
    parent_ref: Optional[str] = None
    children: List["WorkItem"] = field(default_factory=list)
    children_truncated: bool = False
    comments: List[Comment] = field(default_factory=list)

    # Source-only
    number: Optional[int] = None
    repository: Optional[str] = None

    # Target-only
    status_name: Optional[str] = None
    components: List[str] = field(default_factory=list)
    archived: bool = False

    @property
    def is_closed(self) -> bool:
        return self.state == ItemState.CLOSED

    @property
    def assignee_logins(self) -> List[str]:
        return [a.login for a in self.assignees if a.login]

    def __repr__(self):
        return f"<WorkItem(id='{self.id}', state={self.state.value})>"
