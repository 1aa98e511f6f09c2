"""Append-only comment mirroring from GitHub to Jira"""

import logging
import re
from typing import Iterable, List, Optional, Set

from jirabridge.models import Comment, UnitContext
from jirabridge.services.errors import PermissionDeniedError
from jirabridge.services.identity import IdentityMarker
from jirabridge.services.markup import markdown_to_jira

logger = logging.getLogger(__name__)

COMMENT_MARKER_PREFIX = "Comment URL:"
_COMMENT_MARKER_RE = re.compile(r"^[ \t]*Comment URL:[ \t]*(?P<url>\S+)[ \t]*\r?$", re.MULTILINE)
_TRUNCATED_RE = re.compile(r"\[Comment truncated, see (?P<url>[^\s\]]+)\]")

# Comments the writeback posts on GitHub; mirroring them would echo forever.
WRITEBACK_MARKER = "via Jira sync"


def truncation_trailer(url: str) -> str:
    return f"[Comment truncated, see {url}]"


def comment_markers(bodies: Iterable[Optional[str]]) -> Set[str]:
    """Source comment urls already mirrored into a set of Jira comment bodies."""
    markers: Set[str] = set()
    for body in bodies:
        if not body:
            continue
        for m in _COMMENT_MARKER_RE.finditer(body):
            markers.add(IdentityMarker.normalize(m.group("url")))
        for m in _TRUNCATED_RE.finditer(body):
            markers.add(IdentityMarker.normalize(m.group("url")))
    return markers


class CommentReconciler:
    """Mirrors GitHub comments onto a Jira item, never editing or deleting."""

    def __init__(
        self,
        target_client,
        *,
        max_length: int = 30000,
        truncate_length: int = 25000,
        image_width_percent: int = 50,
    ):
        self.target_client = target_client
        self.max_length = max_length
        self.truncate_length = truncate_length
        self.image_width_percent = image_width_percent

    @classmethod
    def from_settings(cls, settings, target_client) -> "CommentReconciler":
        return cls(
            target_client,
            max_length=settings.comment_max_length,
            truncate_length=settings.comment_truncate_length,
            image_width_percent=settings.image_width_percent,
        )

    def format_comment(self, comment: Comment) -> str:
        author = comment.author.login if comment.author else "unknown"
        text = markdown_to_jira(comment.body or "", image_width_percent=self.image_width_percent)
        lines = [f"*{author}* commented:", "", text, ""]
        if comment.created_at:
            lines.append(f"Created: {comment.created_at}")
        if comment.updated_at and comment.updated_at != comment.created_at:
            lines.append(f"Updated: {comment.updated_at}")
        lines.append(f"{COMMENT_MARKER_PREFIX} {IdentityMarker.normalize(comment.url)}")
        body = "\n".join(lines)

        if len(body) > self.max_length:
            body = body[: self.truncate_length] + "\n\n" + truncation_trailer(IdentityMarker.normalize(comment.url))
        return body

    def reconcile(
        self,
        target_key: str,
        source_comments: List[Comment],
        context: Optional[UnitContext] = None,
    ) -> int:
        """Append every GitHub comment not yet on `target_key`; returns how many were added."""
        if not source_comments:
            return 0

        try:
            existing = self.target_client.comments(target_key)
        except PermissionDeniedError as e:
            logger.warning(f"Skipping comment sync for {target_key} (comments inaccessible): {e}")
            if context is not None:
                context.bump("skipped_inaccessible")
            return 0
        markers = comment_markers(c.body for c in existing)

        added = 0
        ordered = sorted(source_comments, key=lambda c: c.created_at or "")
        for comment in ordered:
            url = IdentityMarker.normalize(comment.url)
            if not url:
                logger.debug(f"Skipping comment without url on {target_key}")
                continue
            if url in markers:
                continue
            if WRITEBACK_MARKER in (comment.body or ""):
                continue

            self.target_client.add_comment(target_key, self.format_comment(comment))
            markers.add(url)
            added += 1

        if added:
            logger.info(f"Added {added} comment(s) to {target_key}")
            if context is not None:
                context.bump("comments_added", added)
        return added
