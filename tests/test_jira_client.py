import unittest
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import Mock

RAW = {
    "key": "PROJ-3",
    "fields": {
        "summary": "Crash",
        "description": "text\nUpstream URL: https://github.com/octo/api/issues/3",
        "status": {"name": "Done"},
        "assignee": {"name": "bjira", "displayName": "Bob"},
        "reporter": {"name": "ajira"},
        "issuetype": {"id": "1", "name": "Bug"},
        "labels": ["GitHub", "bug"],
        "components": [{"name": "api"}],
        "updated": "2024-05-01T10:00:00.000+0000",
        "parent": None,
        "archiveddate": "2024-06-01T00:00:00.000+0000",
        "customfield_12311140": "PROJ-1",
    },
}


def _client():
    from jirabridge.services.governor import RequestGovernor
    from jirabridge.services.jira_client import JiraClient

    # Avoid running JiraClient.__init__ (auth/network).
    client = JiraClient.__new__(JiraClient)
    client.jira = Mock()
    client.url = "https://jira.example.com"
    client.project_key = "PROJ"
    client.governor = RequestGovernor(request_delay_s=0, sleep=lambda s: None)
    client.closed_statuses = {"closed", "done"}
    client.epic_link_field = "customfield_12311140"
    return client


class JiraClientNormalizationTests(unittest.TestCase):
    def test_to_work_item(self):
        item = _client().to_work_item(SimpleNamespace(raw=RAW))

        self.assertEqual(item.id, "PROJ-3")
        self.assertTrue(item.is_closed)
        self.assertEqual(item.status_name, "Done")
        self.assertEqual(item.assignee_logins, ["bjira"])
        self.assertEqual(item.kind, "Bug")
        self.assertEqual(item.kind_id, "1")
        self.assertEqual(item.components, ["api"])
        self.assertTrue(item.archived)
        self.assertEqual(item.url, "https://jira.example.com/browse/PROJ-3")
        self.assertEqual(item.parent_ref, "https://jira.example.com/browse/PROJ-1")

    def test_missing_key_is_structural_error(self):
        from jirabridge.services.errors import StructuralError

        with self.assertRaises(StructuralError):
            _client().to_work_item({"fields": {}})


class JiraClientQueryTests(unittest.TestCase):
    def test_component_query_with_since(self):
        client = _client()
        client.jira.search_issues.return_value = [SimpleNamespace(raw=RAW)]

        items = client.list_component_items("Web UI", datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc))

        jql = client.jira.search_issues.call_args.args[0]
        self.assertEqual(
            jql,
            'project = "PROJ" AND component = "Web UI" AND updated >= "2024/05/01 10:00" ORDER BY key ASC',
        )
        self.assertIs(client.jira.search_issues.call_args.kwargs["maxResults"], False)
        self.assertEqual([i.id for i in items], ["PROJ-3"])

    def test_marker_search_quotes_text(self):
        client = _client()
        client.jira.search_issues.return_value = []
        client.search_by_marker('Upstream URL: https://github.com/o/r/issues/1"')
        jql = client.jira.search_issues.call_args.args[0]
        self.assertEqual(
            jql, 'project = "PROJ" AND description ~ "Upstream URL: https://github.com/o/r/issues/1\\""'
        )

    def test_children_queries(self):
        client = _client()
        client.jira.search_issues.return_value = []
        client.search_children("PROJ-1", is_epic=True)
        self.assertEqual(client.jira.search_issues.call_args.args[0], "cf[12311140] = PROJ-1")
        client.search_children("PROJ-2", is_epic=False)
        self.assertEqual(client.jira.search_issues.call_args.args[0], "parent = PROJ-2")

    def test_not_found_translated(self):
        from jirabridge.services.errors import NotFoundError

        err = Exception("Issue Does Not Exist")
        err.status_code = 404
        client = _client()
        client.jira.issue.side_effect = err
        with self.assertRaises(NotFoundError):
            client.get_item("PROJ-404")

    def test_component_names(self):
        client = _client()
        client.jira.project_components.return_value = [SimpleNamespace(name="api"), SimpleNamespace(name="web")]
        self.assertEqual(client.get_component_names(), {"api", "web"})
        client.jira.project_components.assert_called_once_with("PROJ")


class JiraClientMutationTests(unittest.TestCase):
    def test_create_update_transition_comment(self):
        client = _client()
        client.jira.create_issue.return_value = SimpleNamespace(raw=RAW)
        self.assertEqual(client.create_item({"summary": "Crash"}).id, "PROJ-3")
        client.jira.create_issue.assert_called_once_with(fields={"summary": "Crash"})

        issue = Mock()
        client.jira.issue.return_value = issue
        client.update_item("PROJ-3", {"summary": "New"})
        issue.update.assert_called_once_with(fields={"summary": "New"})

        client.transition_item("PROJ-3", "31")
        client.jira.transition_issue.assert_called_once_with("PROJ-3", "31")

        client.add_comment("PROJ-3", "hello")
        client.jira.add_comment.assert_called_once_with("PROJ-3", "hello")

    def test_comments_normalized(self):
        client = _client()
        client.jira.comments.return_value = [SimpleNamespace(body="hi", created="c", updated="u", id="10")]
        comments = client.comments("PROJ-3")
        self.assertEqual(comments[0].body, "hi")
        self.assertEqual(comments[0].id, "10")

    def test_remote_and_issue_links(self):
        client = _client()
        client.add_remote_link("PROJ-3", "https://github.com/octo/api/issues/3", "GitHub issue #3")
        kwargs = client.jira.add_remote_link.call_args.kwargs
        self.assertEqual(kwargs["destination"], {"url": "https://github.com/octo/api/issues/3", "title": "GitHub issue #3"})
        self.assertEqual(kwargs["application"]["name"], "GitHub")
        self.assertEqual(kwargs["relationship"], "Upstream")

        client.link_items("Duplicate", "PROJ-4", "PROJ-3")
        client.jira.create_issue_link.assert_called_once_with("Duplicate", "PROJ-4", "PROJ-3")
