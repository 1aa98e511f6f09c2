"""API routes"""

from jirabridge.api import identity_mappings, sync

__all__ = ["sync", "identity_mappings"]
