"""Jira -> GitHub writeback for the restricted reverse field set"""

import logging
from typing import List, Optional

from jirabridge.models import UnitContext, WorkItem
from jirabridge.services.arbiter import parse_timestamp
from jirabridge.services.errors import NotFoundError
from jirabridge.services.identity import IdentityMarker, extract_jira_key, parse_issue_url
from jirabridge.services.markup import jira_to_markdown
from jirabridge.services.translator import back_link, has_back_link

logger = logging.getLogger(__name__)


def close_comment(key: str) -> str:
    return f"Closed via Jira sync - Jira issue {key} is closed."


def reopen_comment(key: str) -> str:
    return f"Reopened via Jira sync - Jira issue {key} was reopened."


def archived_comment(key: str) -> str:
    return f"Closed via Jira sync - Jira issue {key} has been archived."


class SourceWriteback:
    """Applies Jira-side changes to GitHub.

    Only title, assignees (added, never removed), open/closed state and a
    back-link to the Jira item flow in this direction. Title and state obey
    the timestamp arbiter; assignees and the back-link are idempotent and
    ungated.
    """

    def __init__(
        self,
        source_client,
        target_client,
        translator,
        arbiter,
        statuses,
        *,
        browse_url: str,
        project_key: str = "",
    ):
        self.source_client = source_client
        self.target_client = target_client
        self.translator = translator
        self.arbiter = arbiter
        self.statuses = statuses
        self.browse_url = browse_url
        self.project_key = project_key

    def apply(self, source: WorkItem, target: WorkItem, context: UnitContext) -> None:
        """Reverse-sync one matched pair."""
        repo, number = source.repository, source.number
        changes = self.translator.to_source_fields(target, source, self.browse_url)

        if "add_assignees" in changes:
            self.source_client.add_assignees(repo, number, changes["add_assignees"])
            context.bump("source_updates")

        if "title" in changes and self.arbiter.should_sync_from_target(source.updated_at, target.updated_at):
            self.source_client.update_item(repo, number, title=changes["title"])
            context.bump("source_updates")

        if target.archived and not source.is_closed:
            self._close_source(source, target.id, archived_comment(target.id), context)
            return

        if "state" in changes and self.sync_state(source, target, context):
            return
        if "body" in changes:
            self.source_client.update_item(repo, number, body=changes["body"])
            context.bump("source_updates")

    def sync_state(self, source: WorkItem, target: WorkItem, context: UnitContext) -> bool:
        """Close or reopen GitHub to follow Jira, judged on a freshly fetched issue.

        Returns True when GitHub was changed (the back-link is added with it).
        """
        fresh = self.source_client.get_item(source.repository, source.number)
        if fresh.is_closed == target.is_closed:
            return False
        if not self.arbiter.should_sync_from_target(fresh.updated_at, target.updated_at):
            logger.info(
                f"GitHub {fresh.url} changed after {target.id}; leaving its state for the forward pass"
            )
            return False
        if target.is_closed:
            self._close_source(fresh, target.id, close_comment(target.id), context)
        else:
            self._reopen_source(fresh, target.id, context)
        return True

    def ensure_back_link(self, source: WorkItem, key: str) -> None:
        if has_back_link(source.body, key):
            return
        link = back_link(key, self.browse_url)
        body = f"{source.body}\n\n{link}" if source.body else link
        self.source_client.update_item(source.repository, source.number, body=body)

    def _close_source(self, source: WorkItem, key: str, comment: str, context: UnitContext) -> None:
        self.source_client.close_item(source.repository, source.number)
        self.source_client.add_comment(source.repository, source.number, comment)
        self.ensure_back_link(source, key)
        context.bump("source_updates")
        logger.info(f"Closed GitHub {source.url} to follow {key}")

    def _reopen_source(self, source: WorkItem, key: str, context: UnitContext) -> None:
        self.source_client.reopen_item(source.repository, source.number)
        self.source_client.add_comment(source.repository, source.number, reopen_comment(key))
        self.ensure_back_link(source, key)
        context.bump("source_updates")
        logger.info(f"Reopened GitHub {source.url} to follow {key}")

    def handle_archived(self, source: WorkItem, context: UnitContext, *, close_source: bool = True) -> bool:
        """True when the back-linked Jira item of an unmatched GitHub issue is archived.

        Archived items are invisible to JQL search, so the key is taken from
        the GitHub body and fetched directly. Such an issue is already mirrored
        and must not get a new Jira item; GitHub is closed if still open.
        """
        key = extract_jira_key(source.body, self.project_key or None)
        if not key:
            return False
        try:
            target = self.target_client.get_item(key)
        except NotFoundError:
            logger.debug(f"{source.url} mentions {key}, which does not exist")
            return False
        if not target.archived:
            return False
        if close_source and not source.is_closed:
            self._close_source(source, key, archived_comment(key), context)
        else:
            logger.debug(f"{source.url}: {key} is archived; nothing to do")
            context.bump("skipped")
        return True

    # Jira-driven pass

    def pending(self, context: UnitContext) -> List[WorkItem]:
        """Jira items updated in the window that the forward pass did not touch."""
        return [
            target
            for target in context.target_items
            if target.id not in context.processed_keys and self._updated_since(target, context)
        ]

    def sync_back(self, target: WorkItem, context: UnitContext) -> None:
        context.processed_keys.add(target.id)

        url = IdentityMarker.parse(target.body)
        if not url:
            self.create_source_for(target, context)
            return

        parsed = parse_issue_url(url)
        if parsed is None:
            logger.warning(f"{target.id}: upstream url {url} is not a GitHub issue; skipping")
            context.bump("skipped")
            return
        owner, repo, number = parsed
        source = self.source_client.get_item(f"{owner}/{repo}", number)

        if source.is_closed and not target.is_closed and self.arbiter.should_sync_from_source(
            source.updated_at, target.updated_at
        ):
            if self.statuses.close(target.id):
                context.bump("transitions")
            return
        self.apply(source, target, context)

    @staticmethod
    def _updated_since(target: WorkItem, context: UnitContext) -> bool:
        if context.since is None:
            return True
        updated = parse_timestamp(target.updated_at)
        since = parse_timestamp(context.since)
        return updated is None or since is None or updated >= since

    def create_source_for(self, target: WorkItem, context: UnitContext) -> Optional[WorkItem]:
        """Open a GitHub issue for a Jira item created by hand, then stamp the Jira footer."""
        if target.is_closed:
            logger.debug(f"{target.id} has no upstream url but is closed; skipping")
            return None
        repository = context.unit.repository

        logins = []
        for assignee in target.assignees:
            login = self.translator.users.to_source(assignee.login)
            if login:
                logins.append(login)

        body = jira_to_markdown(target.body)
        link = back_link(target.id, self.browse_url)
        body = f"{body}\n\n{link}" if body else link

        created = self.source_client.create_item(repository, target.title, body, assignees=logins)
        context.bump("source_created")

        description = (target.body or "") + self.translator.footer(created)
        self.target_client.update_item(target.id, {"description": description})
        self.target_client.add_remote_link(target.id, created.url, f"GitHub issue #{created.number}")
        logger.info(f"Created GitHub {created.url} for manually created {target.id}")
        return created
