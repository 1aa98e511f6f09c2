"""Cross-system identity: upstream markers, account mapping, item matching"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from jirabridge.models import UnitContext, WorkItem

logger = logging.getLogger(__name__)


class IdentityMarker:
    """The `Upstream URL: <url>` line a Target description carries.

    This text is the only link between the two trackers, so its format must
    stay byte-stable: items synced by older versions must keep matching.
    """

    PREFIX = "Upstream URL:"
    _PARSE_RE = re.compile(r"^[ \t]*Upstream URL:[ \t]*(?P<url>\S+?)[ \t]*\r?$", re.MULTILINE)

    @staticmethod
    def normalize(url: Optional[str]) -> str:
        return (url or "").strip().rstrip("/")

    @classmethod
    def format(cls, url: str) -> str:
        return f"{cls.PREFIX} {cls.normalize(url)}"

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional[str]:
        """Return the first upstream url embedded in `text`, if any."""
        if not text:
            return None
        m = cls._PARSE_RE.search(text)
        return cls.normalize(m.group("url")) if m else None

    @classmethod
    def pattern_for(cls, url: str) -> re.Pattern:
        # Anchored at end of line so .../issues/39 never matches .../issues/391.
        return re.compile(
            r"^[ \t]*Upstream URL:[ \t]*" + re.escape(cls.normalize(url)) + r"/?[ \t]*\r?$",
            re.MULTILINE,
        )

    @classmethod
    def matches(cls, text: Optional[str], url: str) -> bool:
        if not text or not url:
            return False
        return cls.pattern_for(url).search(text) is not None


_GITHUB_ISSUE_URL_RE = re.compile(
    r"^https?://[^/]+/(?P<owner>[^/\s]+)/(?P<repo>[^/\s]+)/issues/(?P<number>\d+)$"
)
_JIRA_KEY_RE = re.compile(r"\b(?P<key>[A-Z][A-Z0-9_]+-\d+)\b")


def parse_issue_url(url: Optional[str]) -> Optional[Tuple[str, str, int]]:
    """Return (owner, repo, number) for a GitHub issue url."""
    m = _GITHUB_ISSUE_URL_RE.match(IdentityMarker.normalize(url))
    if not m:
        return None
    return m.group("owner"), m.group("repo"), int(m.group("number"))


def extract_jira_key(text: Optional[str], project_key: Optional[str] = None) -> Optional[str]:
    """First Jira issue key mentioned in `text` (optionally restricted to one project)."""
    if not text:
        return None
    for m in _JIRA_KEY_RE.finditer(text):
        key = m.group("key")
        if project_key and not key.startswith(f"{project_key}-"):
            continue
        return key
    return None


def jira_key_order(key: str) -> Tuple[str, int]:
    """Sort key for Jira keys: project, then numeric (PROJ-9 < PROJ-10)."""
    project, _, number = (key or "").rpartition("-")
    try:
        return project, int(number)
    except ValueError:
        return key or "", 0


class UserDirectory:
    """Static, hand-maintained GitHub login <-> Jira user table.

    A missing entry is a normal outcome; callers skip assignee propagation.
    Reverse lookups keep the first GitHub login mapped to a Jira user.
    """

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()):
        self._to_target: Dict[str, str] = {}
        self._to_source: Dict[str, str] = {}
        for source_login, target_user in pairs:
            self._to_target.setdefault(source_login, target_user)
            self._to_source.setdefault(target_user, source_login)

    @classmethod
    def from_settings(cls, settings) -> "UserDirectory":
        return cls(settings.user_mapping_pairs())

    def to_target(self, source_login: Optional[str]) -> Optional[str]:
        if not source_login:
            return None
        return self._to_target.get(source_login)

    def to_source(self, target_user: Optional[str]) -> Optional[str]:
        if not target_user:
            return None
        return self._to_source.get(target_user)

    def first_target_user(self, source_logins: Iterable[str]) -> Optional[str]:
        for login in source_logins:
            mapped = self.to_target(login)
            if mapped:
                return mapped
            logger.debug(f"No Jira mapping for GitHub user '{login}'")
        return None

    def pairs(self) -> List[Tuple[str, str]]:
        return list(self._to_target.items())


class IdentityMatcher:
    """Resolves a Source url to the Target item that embeds it."""

    def __init__(self, target_client, duplicate_link_type: Optional[str] = None):
        self.target_client = target_client
        # Jira link type (e.g. "Duplicate") used to flag extra claimants; None only logs.
        self.duplicate_link_type = duplicate_link_type

    @staticmethod
    def _claimants(items: Iterable[WorkItem], url: str) -> List[WorkItem]:
        return [i for i in items if IdentityMarker.matches(i.body, url)]

    def candidates(self, url: str, context: UnitContext) -> List[WorkItem]:
        found = self._claimants(context.target_items, url)
        if found:
            return found
        # Not among this unit's items (other component, older than the window, ...).
        results = self.target_client.search_by_marker(IdentityMarker.format(url))
        found = self._claimants(results, url)
        for item in found:
            context.remember(item)
        return found

    def match(self, url: str, context: UnitContext) -> Optional[WorkItem]:
        if not url:
            return None
        found = self.candidates(url, context)
        if not found:
            return None
        found.sort(key=lambda i: jira_key_order(i.id))
        canonical = found[0]
        if len(found) > 1:
            dupes = ", ".join(i.id for i in found[1:])
            logger.warning(
                f"Multiple Jira issues claim {url}: using {canonical.id}, duplicates: {dupes}"
            )
            context.bump("duplicates", len(found) - 1)
            if self.duplicate_link_type:
                for dupe in found[1:]:
                    self.target_client.link_items(self.duplicate_link_type, dupe.id, canonical.id)
        return canonical
