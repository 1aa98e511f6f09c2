"""Jira workflow transitions by name"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from jirabridge.models import WorkItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NamedTransition:
    id: str
    name: str


class StatusReconciler:
    """Moves Jira items through their workflow using transition names.

    Transition ids differ per workflow, so they are always looked up from
    what the item currently offers.
    """

    def __init__(self, target_client, *, close_name: str = "Closed", reopen_name: str = "New"):
        self.target_client = target_client
        self.close_name = close_name
        self.reopen_name = reopen_name

    @classmethod
    def from_settings(cls, settings, target_client) -> "StatusReconciler":
        return cls(
            target_client,
            close_name=settings.close_transition_name,
            reopen_name=settings.reopen_transition_name,
        )

    def available_transitions(self, key: str) -> List[NamedTransition]:
        return [
            NamedTransition(id=str(t.get("id")), name=str(t.get("name") or ""))
            for t in self.target_client.transitions(key)
        ]

    def resolve(self, key: str, name: str) -> Optional[NamedTransition]:
        wanted = (name or "").strip().lower()
        for transition in self.available_transitions(key):
            if transition.name.strip().lower() == wanted:
                return transition
        return None

    def transition(self, key: str, name: str) -> bool:
        found = self.resolve(key, name)
        if found is None:
            logger.warning(f"No '{name}' transition available for {key}; leaving status unchanged")
            return False
        self.target_client.transition_item(key, found.id)
        logger.info(f"Transitioned {key} via '{found.name}'")
        return True

    def close(self, key: str) -> bool:
        return self.transition(key, self.close_name)

    def reopen(self, key: str) -> bool:
        return self.transition(key, self.reopen_name)

    def reconcile_status(self, source: WorkItem, target: WorkItem) -> bool:
        """Align the Jira status with the GitHub state; True if a transition was applied."""
        if source.is_closed and not target.is_closed:
            return self.close(target.id)
        if not source.is_closed and target.is_closed:
            return self.reopen(target.id)
        return False
