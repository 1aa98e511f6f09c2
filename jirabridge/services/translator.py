"""GitHub <-> Jira field translation"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Set

from jirabridge.models import WorkItem
from jirabridge.services.errors import FieldTranslationError
from jirabridge.services.identity import IdentityMarker, UserDirectory
from jirabridge.services.markup import markdown_to_jira

logger = logging.getLogger(__name__)

# GitHub issue kind -> Jira issue type name. Anything else becomes a Story.
KIND_TABLE = {
    "bug": "Bug",
    "epic": "Epic",
    "task": "Task",
    "feature": "Story",
}
DEFAULT_ISSUE_TYPE = "Story"

SUBTASK_KINDS = {"sub-task", "subtask"}

FOOTER_SEPARATOR = "\n\n----\n\n"

_BACK_LINK_RE = re.compile(r"\s*\*\*Jira Issue:\*\* \[[A-Z][A-Z0-9_]*-\d+\]\([^)\s]*\)")


def is_epic(item: Optional[WorkItem], epic_type_id: Optional[str] = None) -> bool:
    if item is None:
        return False
    if epic_type_id and item.kind_id == epic_type_id:
        return True
    return (item.kind or "").lower() == "epic"


def is_subtask(item: Optional[WorkItem], subtask_type_id: Optional[str] = None) -> bool:
    if item is None:
        return False
    if subtask_type_id and item.kind_id == subtask_type_id:
        return True
    return (item.kind or "").lower() in SUBTASK_KINDS


def back_link(key: str, browse_url: str) -> str:
    return f"**Jira Issue:** [{key}]({browse_url.rstrip('/')}/{key})"


def has_back_link(body: Optional[str], key: str) -> bool:
    return f"**Jira Issue:** [{key}]" in (body or "")


def strip_back_link(body: Optional[str]) -> str:
    """GitHub body without the Jira back-link the writeback appends."""
    return _BACK_LINK_RE.sub("", body or "").rstrip()


class FieldTranslator:
    """Builds Jira field payloads from GitHub issues and the reverse subset."""

    def __init__(
        self,
        users: UserDirectory,
        *,
        project_key: str = "",
        provenance_label: str = "GitHub",
        epic_issue_type_id: str = "16",
        subtask_issue_type_id: str = "5",
        epic_link_field: str = "customfield_12311140",
        epic_name_field: str = "customfield_12311141",
        image_width_percent: int = 50,
    ):
        self.users = users
        self.project_key = project_key
        self.provenance_label = provenance_label
        self.epic_issue_type_id = epic_issue_type_id
        self.subtask_issue_type_id = subtask_issue_type_id
        self.epic_link_field = epic_link_field
        self.epic_name_field = epic_name_field
        self.image_width_percent = image_width_percent

    @classmethod
    def from_settings(cls, settings, users: UserDirectory) -> "FieldTranslator":
        return cls(
            users,
            project_key=settings.jira_project_key,
            provenance_label=settings.provenance_label,
            epic_issue_type_id=settings.epic_issue_type_id,
            subtask_issue_type_id=settings.subtask_issue_type_id,
            epic_link_field=settings.epic_link_field,
            epic_name_field=settings.epic_name_field,
            image_width_percent=settings.image_width_percent,
        )

    # Description

    @staticmethod
    def footer(item: WorkItem) -> str:
        """The provenance footer; its `Upstream URL:` line is the cross-system link."""
        reporter = item.author.login if item.author else ""
        number = item.number if item.number is not None else item.id
        return (
            FOOTER_SEPARATOR
            + f"GH Issue {number}\n"
            + IdentityMarker.format(item.url)
            + "\n"
            + f"Reporter: {reporter}\n"
            + f"Assignees: {', '.join(item.assignee_logins)}"
        )

    def build_description(self, item: WorkItem) -> str:
        body = markdown_to_jira(strip_back_link(item.body), image_width_percent=self.image_width_percent)
        return body + self.footer(item)

    # Labels / kind

    def map_labels(self, labels: Iterable[str]) -> List[str]:
        mapped = [self.provenance_label] if self.provenance_label else []
        for label in sorted(labels or []):
            converted = "-".join(label.split())
            if converted and converted not in mapped:
                mapped.append(converted)
        return mapped

    def issue_type(self, item: WorkItem) -> Dict[str, str]:
        if is_subtask(item):
            return {"id": self.subtask_issue_type_id}
        name = KIND_TABLE.get((item.kind or "").lower(), DEFAULT_ISSUE_TYPE)
        if name == "Epic":
            return {"id": self.epic_issue_type_id}
        return {"name": name}

    # Source -> Target

    def to_target_fields(
        self,
        item: WorkItem,
        *,
        is_update: bool,
        component: Optional[str],
        existing: Optional[WorkItem] = None,
        known_components: Optional[Set[str]] = None,
        parent_key: Optional[str] = None,
        epic_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Jira `fields` payload for creating or editing the counterpart of `item`.

        `parent_key` makes the new item a sub-task of that key; `epic_key`
        links it to an epic instead.
        """
        if not component:
            raise FieldTranslationError(f"{item.url}: no Jira component configured")
        if known_components is not None and component not in known_components:
            raise FieldTranslationError(
                f"{item.url}: component '{component}' does not exist in Jira project {self.project_key}"
            )

        fields: Dict[str, Any] = {
            "summary": item.title,
            "description": self.build_description(item),
            "labels": self.map_labels(item.labels),
            "components": [{"name": component}],
        }

        # An existing sub-task keeps its type; Jira changes it only through the move wizard.
        if not (is_update and is_subtask(existing, self.subtask_issue_type_id)):
            if parent_key:
                fields["issuetype"] = {"id": self.subtask_issue_type_id}
                fields["parent"] = {"key": parent_key}
            else:
                fields["issuetype"] = self.issue_type(item)

        if epic_key and not parent_key:
            fields[self.epic_link_field] = epic_key

        if not (is_update and existing is not None and existing.assignees):
            assignee = self.users.first_target_user(item.assignee_logins)
            if assignee:
                fields["assignee"] = {"name": assignee}

        if not is_update:
            if not self.project_key:
                raise FieldTranslationError(f"{item.url}: no Jira project key configured")
            fields["project"] = {"key": self.project_key}
            if fields.get("issuetype", {}).get("id") == self.epic_issue_type_id:
                fields[self.epic_name_field] = item.title
        return fields

    @staticmethod
    def changed_fields(fields: Dict[str, Any], target: WorkItem) -> Dict[str, Any]:
        """Subset of an update payload that differs from what `target` already holds."""
        changed: Dict[str, Any] = {}
        for name, value in fields.items():
            if name == "summary":
                same = value == target.title
            elif name == "description":
                same = (value or "").rstrip() == (target.body or "").rstrip()
            elif name == "labels":
                same = set(value) == set(target.labels)
            elif name == "components":
                same = {c["name"] for c in value} == set(target.components)
            elif name == "issuetype":
                if "id" in value:
                    same = value["id"] == target.kind_id
                else:
                    same = value.get("name", "").lower() == (target.kind or "").lower()
            elif name == "assignee":
                same = value.get("name") in target.assignee_logins
            else:
                same = False
            if not same:
                changed[name] = value
        return changed

    # Target -> Source

    def to_source_fields(self, target: WorkItem, source: WorkItem, browse_url: str) -> Dict[str, Any]:
        """Candidate GitHub changes from a Jira item.

        Keys present only when they would change something: `title`,
        `add_assignees`, `state`, `body` (the back-link appended). Assignees
        are never removed and the body is never rewritten otherwise.
        """
        changes: Dict[str, Any] = {}
        if target.title and target.title != source.title:
            changes["title"] = target.title

        for assignee in target.assignees:
            login = self.users.to_source(assignee.login)
            if login and login not in source.assignee_logins:
                changes["add_assignees"] = [login]
                break

        if target.is_closed != source.is_closed:
            changes["state"] = "closed" if target.is_closed else "open"

        if not has_back_link(source.body, target.id):
            link = back_link(target.id, browse_url)
            changes["body"] = f"{source.body}\n\n{link}" if source.body else link
        return changes
