"""Parent/child reconciliation (epics, sub-issues, sub-tasks)"""

import logging
from typing import Dict

from jirabridge.models import UnitContext, WorkItem
from jirabridge.services.errors import StructuralError, SyncError, error_collector
from jirabridge.services.identity import IdentityMarker
from jirabridge.services.translator import is_epic

logger = logging.getLogger(__name__)


class HierarchyReconciler:
    """Makes the children of a Jira item mirror a GitHub item's sub-issues.

    Children of an epic are linked through the epic-link field; children of
    anything else become sub-tasks. Jira children whose GitHub counterpart
    is no longer a sub-issue are closed, never deleted.
    """

    def __init__(self, target_client, translator, matcher, comments, statuses, collector=None):
        self.target_client = target_client
        self.translator = translator
        self.matcher = matcher
        self.comments = comments
        self.statuses = statuses
        self.collector = collector or error_collector

    def reconcile_children(
        self,
        parent_key: str,
        parent_item: WorkItem,
        parent_is_epic: bool,
        context: UnitContext,
    ) -> None:
        existing = self.target_client.search_children(parent_key, is_epic=parent_is_epic)
        index: Dict[str, WorkItem] = {}
        for child in existing:
            url = IdentityMarker.parse(child.body)
            if url:
                index.setdefault(url, child)

        for child in parent_item.children:
            try:
                self._reconcile_child(parent_key, child, parent_is_epic, index, context)
            except StructuralError:
                raise
            except SyncError as e:
                context.bump("errors")
                self.collector.add_error(f"Child {child.url} of {parent_key}", e)

        if parent_item.children_truncated:
            logger.info(
                f"Sub-issue list of {parent_item.url} was truncated; not closing children of {parent_key}"
            )
            return

        for url, orphan in index.items():
            if orphan.is_closed:
                continue
            logger.info(f"{orphan.id} is no longer a child of {parent_item.url} ({url}); closing")
            if self.statuses.close(orphan.id):
                context.bump("children_closed")

    def _reconcile_child(
        self,
        parent_key: str,
        child: WorkItem,
        parent_is_epic: bool,
        index: Dict[str, WorkItem],
        context: UnitContext,
    ) -> None:
        url = IdentityMarker.normalize(child.url)

        target_child = index.pop(url, None)
        if target_child is None:
            target_child = self.matcher.match(url, context)
            if target_child is not None:
                self._relink(target_child, parent_key, parent_is_epic)
                context.bump("relinked")
            elif parent_is_epic and is_epic(child):
                logger.warning(f"Skipping {child.url}: an epic cannot be the child of epic {parent_key}")
                context.bump("skipped")
                return
            else:
                target_child = self._create(parent_key, child, parent_is_epic, context)

        context.processed_keys.add(target_child.id)
        self.comments.reconcile(target_child.id, child.comments, context)

        if parent_is_epic and child.children:
            self.reconcile_children(target_child.id, child, False, context)

    def _relink(self, target_child: WorkItem, parent_key: str, parent_is_epic: bool) -> None:
        if parent_is_epic:
            fields = {self.translator.epic_link_field: parent_key}
        else:
            fields = {
                "parent": {"key": parent_key},
                "issuetype": {"id": self.translator.subtask_issue_type_id},
            }
            logger.warning(
                f"Re-parenting {target_child.id} under {parent_key} as a sub-task; "
                f"its issue type may need manual follow-up"
            )
        self.target_client.update_item(target_child.id, fields)
        logger.info(f"Relinked {target_child.id} to parent {parent_key}")

    def _create(
        self, parent_key: str, child: WorkItem, parent_is_epic: bool, context: UnitContext
    ) -> WorkItem:
        fields = self.translator.to_target_fields(
            child,
            is_update=False,
            component=context.unit.component,
            known_components=context.components,
            parent_key=None if parent_is_epic else parent_key,
            epic_key=parent_key if parent_is_epic else None,
        )
        created = self.target_client.create_item(fields)
        context.remember(created)
        context.bump("created")
        logger.info(f"Created {created.id} as child of {parent_key} for {child.url}")
        if child.is_closed:
            if self.statuses.close(created.id):
                context.bump("transitions")
        return created
