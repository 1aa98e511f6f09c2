"""GitHub <-> Jira issue reconciliation service"""
