"""Jira API client wrapper"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from jira import JIRA

from jirabridge.models import Comment, Identity, ItemState, WorkItem
from jirabridge.services.errors import StructuralError
from jirabridge.services.governor import RequestGovernor

logger = logging.getLogger(__name__)


def jql_string(value: str) -> str:
    """Quote a value as a JQL string literal."""
    escaped = (value or "").replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def jql_datetime(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc)
    return value.strftime('"%Y/%m/%d %H:%M"')


def custom_field_clause(field_id: str) -> str:
    """`customfield_12311140` -> `cf[12311140]`"""
    if field_id.startswith("customfield_"):
        return f"cf[{field_id[len('customfield_'):]}]"
    return jql_string(field_id)


def _user(raw: Optional[Dict[str, Any]]) -> Optional[Identity]:
    if not raw:
        return None
    login = raw.get("name") or raw.get("accountId") or raw.get("key")
    if not login:
        return None
    return Identity(login=login, display_name=raw.get("displayName"))


class JiraClient:
    """Wrapper for Jira issue operations (the Target side)."""

    def __init__(
        self,
        url: str,
        *,
        project_key: str,
        token: Optional[str] = None,
        email: Optional[str] = None,
        governor: Optional[RequestGovernor] = None,
        closed_statuses: Iterable[str] = ("closed",),
        epic_link_field: str = "customfield_12311140",
    ):
        """Initialize Jira client"""
        options = {"server": url}
        if email and token:
            self.jira = JIRA(options=options, basic_auth=(email, token), get_server_info=False)
        elif token:
            self.jira = JIRA(options=options, token_auth=token, get_server_info=False)
        else:
            self.jira = JIRA(options=options, get_server_info=False)
        self.url = url.rstrip("/")
        self.project_key = project_key
        self.governor = governor or RequestGovernor()
        self.closed_statuses = {s.lower() for s in closed_statuses}
        self.epic_link_field = epic_link_field

    @classmethod
    def from_settings(cls, settings, governor: Optional[RequestGovernor] = None) -> "JiraClient":
        return cls(
            settings.jira_url,
            project_key=settings.jira_project_key,
            token=settings.jira_token,
            email=settings.jira_email,
            governor=governor,
            closed_statuses=settings.closed_statuses(),
            epic_link_field=settings.epic_link_field,
        )

    @property
    def fields(self) -> str:
        return ",".join(
            [
                "summary",
                "description",
                "status",
                "assignee",
                "reporter",
                "issuetype",
                "labels",
                "components",
                "updated",
                "parent",
                "archiveddate",
                self.epic_link_field,
            ]
        )

    def browse_url(self, key: str) -> str:
        return f"{self.url}/browse/{key}"

    def to_work_item(self, issue: Any) -> WorkItem:
        """Normalize a jira.Issue (or its raw dict) into a WorkItem."""
        raw = issue if isinstance(issue, dict) else getattr(issue, "raw", None)
        try:
            key = raw["key"]
            fields = raw.get("fields") or {}
            status = (fields.get("status") or {}).get("name")
            issuetype = fields.get("issuetype") or {}
            assignee = _user(fields.get("assignee"))
            parent = (fields.get("parent") or {}).get("key") or fields.get(self.epic_link_field)
            return WorkItem(
                id=key,
                title=fields.get("summary") or "",
                body=fields.get("description") or "",
                state=ItemState.CLOSED
                if (status or "").lower() in self.closed_statuses
                else ItemState.OPEN,
                kind=issuetype.get("name"),
                kind_id=str(issuetype["id"]) if issuetype.get("id") is not None else None,
                labels=set(fields.get("labels") or []),
                assignees=[assignee] if assignee else [],
                author=_user(fields.get("reporter")),
                updated_at=fields.get("updated"),
                url=self.browse_url(key),
                parent_ref=self.browse_url(parent) if isinstance(parent, str) and parent else None,
                status_name=status,
                components=[c.get("name") for c in (fields.get("components") or []) if c.get("name")],
                archived=bool(fields.get("archiveddate")),
            )
        except (AttributeError, KeyError, TypeError) as e:
            raise StructuralError(f"Unexpected Jira issue payload: {e}") from e

    # Queries

    def search(self, jql: str) -> List[WorkItem]:
        issues = self.governor.call(
            lambda: self.jira.search_issues(jql, maxResults=False, fields=self.fields),
            what=f"JQL search ({jql})",
        )
        return [self.to_work_item(issue) for issue in issues]

    def list_component_items(self, component: str, since: Optional[datetime] = None) -> List[WorkItem]:
        jql = f"project = {jql_string(self.project_key)} AND component = {jql_string(component)}"
        if since is not None:
            jql += f" AND updated >= {jql_datetime(since)}"
        items = self.search(jql + " ORDER BY key ASC")
        logger.info(f"Fetched {len(items)} Jira issue(s) for component {component}")
        return items

    def search_by_marker(self, marker_text: str) -> List[WorkItem]:
        """Full-text candidates for a marker line; callers must filter exact matches."""
        jql = f"project = {jql_string(self.project_key)} AND description ~ {jql_string(marker_text)}"
        return self.search(jql)

    def search_children(self, parent_key: str, *, is_epic: bool) -> List[WorkItem]:
        if is_epic:
            jql = f"{custom_field_clause(self.epic_link_field)} = {parent_key}"
        else:
            jql = f"parent = {parent_key}"
        return self.search(jql)

    def get_item(self, key: str) -> WorkItem:
        issue = self.governor.call(
            lambda: self.jira.issue(key, fields=self.fields), what=f"get {key}"
        )
        return self.to_work_item(issue)

    def get_component_names(self) -> Set[str]:
        components = self.governor.call(
            lambda: self.jira.project_components(self.project_key),
            what=f"list components of {self.project_key}",
        )
        return {c.name for c in components}

    # Mutations

    def create_item(self, fields: Dict[str, Any]) -> WorkItem:
        issue = self.governor.call(
            lambda: self.jira.create_issue(fields=fields), what="create issue", mutating=True
        )
        item = self.to_work_item(issue)
        logger.info(f"Created Jira issue {item.id}")
        return item

    def update_item(self, key: str, fields: Dict[str, Any]) -> None:
        issue = self.governor.call(lambda: self.jira.issue(key, fields="summary"), what=f"get {key}")
        self.governor.call(lambda: issue.update(fields=fields), what=f"edit {key}", mutating=True)
        logger.info(f"Updated Jira issue {key}: {sorted(fields)}")

    def transitions(self, key: str) -> List[Dict[str, Any]]:
        return self.governor.call(lambda: self.jira.transitions(key), what=f"list transitions of {key}")

    def transition_item(self, key: str, transition_id: str) -> None:
        self.governor.call(
            lambda: self.jira.transition_issue(key, transition_id),
            what=f"transition {key}",
            mutating=True,
        )

    def comments(self, key: str) -> List[Comment]:
        raw_comments = self.governor.call(lambda: self.jira.comments(key), what=f"list comments of {key}")
        return [
            Comment(
                body=getattr(c, "body", "") or "",
                created_at=getattr(c, "created", None),
                updated_at=getattr(c, "updated", None),
                id=str(getattr(c, "id", "")) or None,
            )
            for c in raw_comments
        ]

    def add_comment(self, key: str, body: str) -> None:
        self.governor.call(
            lambda: self.jira.add_comment(key, body), what=f"comment on {key}", mutating=True
        )

    def add_remote_link(self, key: str, url: str, title: str, relationship: str = "Upstream") -> None:
        # globalId makes Jira update an existing link instead of adding another.
        self.governor.call(
            lambda: self.jira.add_remote_link(
                key,
                destination={"url": url, "title": title},
                globalId=url,
                application={"type": "com.github", "name": "GitHub"},
                relationship=relationship,
            ),
            what=f"remote link {key} -> {url}",
            mutating=True,
        )

    def link_items(self, link_type: str, inward_key: str, outward_key: str) -> None:
        self.governor.call(
            lambda: self.jira.create_issue_link(link_type, inward_key, outward_key),
            what=f"link {inward_key} -> {outward_key}",
            mutating=True,
        )
        logger.info(f"Linked {inward_key} to {outward_key} ({link_type})")
