"""Application configuration"""

from typing import List, Tuple

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Source (GitHub)
    github_token: str | None = None
    github_api_url: str = "https://api.github.com"

    # Target (Jira)
    jira_url: str = ""
    # Personal access token (bearer). If jira_email is also set, basic auth is used instead.
    jira_token: str | None = None
    jira_email: str | None = None
    jira_project_key: str = ""

    # Comma-separated repositories to reconcile, optionally mapped to a Jira component.
    # The component defaults to the repository name.
    #
    # Example: "octo-org/api,octo-org/web-ui:Web UI"
    sync_repos: str | None = None

    # Comma-separated GitHub login -> Jira user name pairs.
    #
    # Example: "octocat=jdoe,hubot=bot-account"
    user_mappings: str | None = None

    # Field translation
    provenance_label: str = "GitHub"
    epic_issue_type_id: str = "16"
    subtask_issue_type_id: str = "5"
    epic_link_field: str = "customfield_12311140"
    epic_name_field: str = "customfield_12311141"
    image_width_percent: int = 50

    # Jira issue link type used to connect duplicate claimants of one GitHub url (e.g. "Duplicate").
    # Unset: duplicates are only logged.
    duplicate_link_type: str | None = None

    # Workflow
    closed_status_names: str = "Closed"
    close_transition_name: str = "Closed"
    reopen_transition_name: str = "New"

    # Arbitration
    timestamp_tolerance_seconds: int = 60

    # Comments (Jira rejects bodies above ~32k characters)
    comment_max_length: int = 30000
    comment_truncate_length: int = 25000

    # Rate limiting / retries
    request_delay_seconds: float = 1.0
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 1.0

    # Batch window
    default_lookback_days: int = 7
    sync_interval_minutes: int = 60
    scheduler_enabled: bool = True

    # Logging
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Auth (optional). When set, /api/* requires "Authorization: Bearer <token>".
    api_token: str | None = None

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def jira_browse_url(self) -> str:
        return f"{self.jira_url.rstrip('/')}/browse"

    def repo_components(self) -> List[Tuple[str, str]]:
        """Parse sync_repos into (owner/repo, component) pairs, preserving order."""
        pairs: List[Tuple[str, str]] = []
        for raw in (self.sync_repos or "").split(","):
            entry = raw.strip()
            if not entry:
                continue
            repo, _, component = entry.partition(":")
            repo = repo.strip().strip("/")
            if "/" not in repo:
                raise ValueError(f"Invalid repository '{entry}' (expected owner/repo)")
            pairs.append((repo, component.strip() or repo.split("/")[-1]))
        return pairs

    def user_mapping_pairs(self) -> List[Tuple[str, str]]:
        """Parse user_mappings into (github_login, jira_user) pairs, preserving order."""
        pairs: List[Tuple[str, str]] = []
        for raw in (self.user_mappings or "").split(","):
            source, sep, target = raw.partition("=")
            if not sep or not source.strip() or not target.strip():
                continue
            pairs.append((source.strip(), target.strip()))
        return pairs

    def closed_statuses(self) -> set[str]:
        return {s.strip().lower() for s in self.closed_status_names.split(",") if s.strip()}


settings = Settings()
