"""Services"""

from jirabridge.services.github_client import GitHubClient
from jirabridge.services.jira_client import JiraClient
from jirabridge.services.sync_service import SyncService

__all__ = ["GitHubClient", "JiraClient", "SyncService"]
