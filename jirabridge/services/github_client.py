"""GitHub API client wrapper"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from github import Auth, Github

from jirabridge.models import Comment, Identity, ItemState, WorkItem
from jirabridge.services.errors import StructuralError
from jirabridge.services.governor import RequestGovernor
from jirabridge.services.identity import parse_issue_url

logger = logging.getLogger(__name__)

# Label names that imply an issue kind when the repository has no issue types.
_LABEL_KINDS = ("epic", "bug", "feature", "task")

# `parent_issue_url` on sub-issues points at the REST resource, not the browser page.
_API_ISSUE_URL_RE = re.compile(r"/repos/(?P<owner>[^/]+)/(?P<repo>[^/]+)/issues/(?P<number>\d+)$")


def _iso(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    return str(value)


def _parent_url(issue: Any) -> Optional[str]:
    """Browser url of the parent issue, from the `parent_issue_url` API link."""
    raw = getattr(issue, "raw_data", None) or {}
    api_url = raw.get("parent_issue_url") if isinstance(raw, dict) else None
    if not api_url:
        return None
    m = _API_ISSUE_URL_RE.search(api_url)
    if not m:
        return None
    host = "/".join(str(issue.html_url).split("/")[:3])
    return f"{host}/{m.group('owner')}/{m.group('repo')}/issues/{m.group('number')}"


def _identity(user: Any) -> Optional[Identity]:
    if user is None:
        return None
    login = getattr(user, "login", None)
    if not login:
        return None
    return Identity(login=login, display_name=getattr(user, "name", None))


class GitHubClient:
    """Wrapper for GitHub issue operations (the Source side)."""

    def __init__(
        self,
        token: Optional[str],
        *,
        base_url: str = "https://api.github.com",
        governor: Optional[RequestGovernor] = None,
        max_children: int = 100,
    ):
        """Initialize GitHub client"""
        self.gh = Github(auth=Auth.Token(token), base_url=base_url) if token else Github(base_url=base_url)
        self.governor = governor or RequestGovernor()
        self.max_children = max_children

    def _repo(self, repository: str):
        return self.governor.call(lambda: self.gh.get_repo(repository), what=f"get repo {repository}")

    def _issue(self, repository: str, number: int):
        repo = self._repo(repository)
        return self.governor.call(
            lambda: repo.get_issue(int(number)), what=f"get issue {repository}#{number}"
        )

    @staticmethod
    def _kind(issue: Any, labels: List[str]) -> Optional[str]:
        raw = getattr(issue, "raw_data", None) or {}
        issue_type = raw.get("type") if isinstance(raw, dict) else None
        if isinstance(issue_type, dict) and issue_type.get("name"):
            return str(issue_type["name"])
        lowered = {label.lower() for label in labels}
        for kind in _LABEL_KINDS:
            if kind in lowered:
                return kind
        return None

    def _comments(self, issue: Any, repository: str) -> List[Comment]:
        raw_comments = self.governor.call(
            lambda: list(issue.get_comments()),
            what=f"list comments {repository}#{issue.number}",
        )
        comments = []
        for c in raw_comments:
            comments.append(
                Comment(
                    body=c.body or "",
                    author=_identity(getattr(c, "user", None)),
                    created_at=_iso(getattr(c, "created_at", None)),
                    updated_at=_iso(getattr(c, "updated_at", None)),
                    url=getattr(c, "html_url", None),
                    id=str(c.id) if getattr(c, "id", None) is not None else None,
                )
            )
        return comments

    def _children(self, issue: Any, repository: str, depth: int) -> tuple[List[WorkItem], bool]:
        raw = getattr(issue, "raw_data", None) or {}
        summary = raw.get("sub_issues_summary") if isinstance(raw, dict) else None
        total = int((summary or {}).get("total") or 0)
        if summary is not None and total == 0:
            return [], False

        sub_issues = self.governor.call(
            lambda: list(issue.get_sub_issues()[: self.max_children]),
            what=f"list sub-issues {repository}#{issue.number}",
        )
        children = []
        for sub in sub_issues:
            child_repo = repository
            parsed = parse_issue_url(getattr(sub, "html_url", None))
            if parsed:
                child_repo = f"{parsed[0]}/{parsed[1]}"
            child = self.to_work_item(sub, child_repo, depth=depth + 1)
            child.parent_ref = issue.html_url
            children.append(child)
        return children, total > len(children)

    def to_work_item(self, issue: Any, repository: str, *, depth: int = 0, with_details: bool = True) -> WorkItem:
        """Normalize a PyGithub issue into a WorkItem."""
        try:
            labels = [label.name for label in (issue.labels or [])]
            item = WorkItem(
                id=str(issue.number),
                number=int(issue.number),
                title=issue.title or "",
                body=issue.body or "",
                state=ItemState.CLOSED if str(issue.state).lower() == "closed" else ItemState.OPEN,
                kind=self._kind(issue, labels),
                labels=set(labels),
                assignees=[a for a in (_identity(u) for u in (issue.assignees or [])) if a],
                author=_identity(getattr(issue, "user", None)),
                updated_at=_iso(issue.updated_at),
                url=issue.html_url,
                parent_ref=_parent_url(issue),
                repository=repository,
            )
        except (AttributeError, TypeError, ValueError) as e:
            raise StructuralError(f"Unexpected GitHub issue payload in {repository}: {e}") from e

        if with_details:
            item.comments = self._comments(issue, repository)
            # Sub-issues two levels deep: epic -> issue -> sub-task.
            if depth < 2:
                item.children, item.children_truncated = self._children(issue, repository, depth)
        return item

    def list_items(self, repository: str, since: Optional[datetime] = None) -> List[WorkItem]:
        """List issues updated since `since` (all states, pull requests excluded)."""
        repo = self._repo(repository)
        params: Dict[str, Any] = {"state": "all", "sort": "updated", "direction": "desc"}
        if since:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            params["since"] = since
        issues = self.governor.call(
            lambda: list(repo.get_issues(**params)), what=f"list issues {repository}"
        )
        items = []
        for issue in issues:
            if getattr(issue, "pull_request", None) is not None:
                continue
            items.append(self.to_work_item(issue, repository))
        logger.info(f"Fetched {len(items)} GitHub issue(s) from {repository}")
        return items

    def get_item(self, repository: str, number: int, *, with_details: bool = False) -> WorkItem:
        """Fetch one issue fresh from GitHub."""
        issue = self._issue(repository, number)
        return self.to_work_item(issue, repository, with_details=with_details)

    def update_item(self, repository: str, number: int, **fields) -> None:
        """Edit title/body/state of an issue."""
        issue = self._issue(repository, number)
        self.governor.call(
            lambda: issue.edit(**fields), what=f"edit issue {repository}#{number}", mutating=True
        )
        logger.info(f"Updated GitHub issue {repository}#{number}: {sorted(fields)}")

    def close_item(self, repository: str, number: int) -> None:
        self.update_item(repository, number, state="closed")

    def reopen_item(self, repository: str, number: int) -> None:
        self.update_item(repository, number, state="open")

    def add_comment(self, repository: str, number: int, body: str) -> None:
        issue = self._issue(repository, number)
        self.governor.call(
            lambda: issue.create_comment(body),
            what=f"comment on {repository}#{number}",
            mutating=True,
        )

    def add_assignees(self, repository: str, number: int, logins: List[str]) -> None:
        issue = self._issue(repository, number)
        self.governor.call(
            lambda: issue.add_to_assignees(*logins),
            what=f"assign {repository}#{number}",
            mutating=True,
        )
        logger.info(f"Assigned {', '.join(logins)} to GitHub issue {repository}#{number}")

    def create_item(
        self, repository: str, title: str, body: str, assignees: Optional[List[str]] = None
    ) -> WorkItem:
        repo = self._repo(repository)
        kwargs: Dict[str, Any] = {"title": title, "body": body}
        if assignees:
            kwargs["assignees"] = assignees
        issue = self.governor.call(
            lambda: repo.create_issue(**kwargs), what=f"create issue in {repository}", mutating=True
        )
        logger.info(f"Created GitHub issue {repository}#{issue.number}")
        return self.to_work_item(issue, repository, with_details=False)
