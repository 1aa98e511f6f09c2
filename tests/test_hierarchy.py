import unittest
from unittest.mock import Mock

GH = "https://github.com/octo/api/issues/"


def _gh(number, kind=None, closed=False, children=()):
    from jirabridge.models import Identity, ItemState, WorkItem

    return WorkItem(
        id=str(number),
        number=number,
        title=f"Issue {number}",
        url=f"{GH}{number}",
        kind=kind,
        author=Identity("alice"),
        state=ItemState.CLOSED if closed else ItemState.OPEN,
        children=list(children),
        repository="octo/api",
    )


def _jira(key, number=None, closed=False):
    from jirabridge.models import ItemState, WorkItem

    body = f"text\n\n----\n\nGH Issue {number}\nUpstream URL: {GH}{number}\n" if number else "manual"
    return WorkItem(id=key, title=key, body=body, state=ItemState.CLOSED if closed else ItemState.OPEN)


class HierarchyReconcilerTests(unittest.TestCase):
    def setUp(self):
        from jirabridge.models import SyncUnit, UnitContext
        from jirabridge.services.errors import ErrorCollector
        from jirabridge.services.hierarchy import HierarchyReconciler
        from jirabridge.services.identity import UserDirectory
        from jirabridge.services.translator import FieldTranslator

        self.target_client = Mock()
        self.target_client.search_children.return_value = []
        self.target_client.create_item.side_effect = lambda fields: _jira("PROJ-100")
        self.matcher = Mock()
        self.matcher.match.return_value = None
        self.comments = Mock()
        self.statuses = Mock()
        self.statuses.close.return_value = True
        self.collector = ErrorCollector()
        self.reconciler = HierarchyReconciler(
            self.target_client,
            FieldTranslator(UserDirectory(), project_key="PROJ"),
            self.matcher,
            self.comments,
            self.statuses,
            self.collector,
        )
        self.ctx = UnitContext(unit=SyncUnit("octo/api", "api"))

    def test_indexed_children_kept_and_orphans_closed(self):
        self.target_client.search_children.return_value = [
            _jira("PROJ-2", 2),
            _jira("PROJ-3", 3),
            _jira("PROJ-4", 4, closed=True),
            _jira("PROJ-5"),
        ]
        parent = _gh(1, children=[_gh(2)])

        self.reconciler.reconcile_children("PROJ-1", parent, False, self.ctx)

        self.target_client.search_children.assert_called_once_with("PROJ-1", is_epic=False)
        self.target_client.create_item.assert_not_called()
        self.statuses.close.assert_called_once_with("PROJ-3")
        self.assertEqual(self.ctx.stats["children_closed"], 1)
        self.comments.reconcile.assert_called_once()
        self.assertEqual(self.comments.reconcile.call_args.args[0], "PROJ-2")

    def test_missing_epic_child_created_with_epic_link(self):
        parent = _gh(1, kind="epic", children=[_gh(6)])

        self.reconciler.reconcile_children("PROJ-1", parent, True, self.ctx)

        fields = self.target_client.create_item.call_args.args[0]
        self.assertEqual(fields["customfield_12311140"], "PROJ-1")
        self.assertNotIn("parent", fields)
        self.assertIn("Upstream URL: https://github.com/octo/api/issues/6", fields["description"])
        self.assertEqual(self.ctx.stats["created"], 1)
        self.assertIn("PROJ-100", [i.id for i in self.ctx.target_items])

    def test_missing_child_of_non_epic_created_as_subtask(self):
        parent = _gh(1, children=[_gh(7, closed=True)])

        self.reconciler.reconcile_children("PROJ-1", parent, False, self.ctx)

        fields = self.target_client.create_item.call_args.args[0]
        self.assertEqual(fields["parent"], {"key": "PROJ-1"})
        self.assertEqual(fields["issuetype"], {"id": "5"})
        self.statuses.close.assert_called_once_with("PROJ-100")

    def test_epic_cannot_be_child_of_epic(self):
        parent = _gh(1, kind="epic", children=[_gh(8, kind="epic")])

        self.reconciler.reconcile_children("PROJ-1", parent, True, self.ctx)

        self.target_client.create_item.assert_not_called()
        self.assertEqual(self.ctx.stats["skipped"], 1)

    def test_child_matched_elsewhere_is_relinked(self):
        self.matcher.match.return_value = _jira("PROJ-8", 9)
        parent = _gh(1, kind="epic", children=[_gh(9)])

        self.reconciler.reconcile_children("PROJ-1", parent, True, self.ctx)

        self.target_client.update_item.assert_called_once_with("PROJ-8", {"customfield_12311140": "PROJ-1"})
        self.target_client.create_item.assert_not_called()
        self.assertEqual(self.ctx.stats["relinked"], 1)

    def test_relink_under_non_epic_forces_subtask(self):
        self.matcher.match.return_value = _jira("PROJ-8", 9)
        parent = _gh(1, children=[_gh(9)])

        self.reconciler.reconcile_children("PROJ-1", parent, False, self.ctx)

        self.target_client.update_item.assert_called_once_with(
            "PROJ-8", {"parent": {"key": "PROJ-1"}, "issuetype": {"id": "5"}}
        )

    def test_truncated_child_list_never_closes(self):
        self.target_client.search_children.return_value = [_jira("PROJ-3", 3)]
        parent = _gh(1, children=[_gh(2)])
        parent.children_truncated = True

        self.reconciler.reconcile_children("PROJ-1", parent, False, self.ctx)

        self.statuses.close.assert_not_called()

    def test_grandchildren_of_epic_become_subtasks(self):
        self.target_client.search_children.side_effect = lambda key, is_epic: (
            [_jira("PROJ-2", 2)] if is_epic else []
        )
        parent = _gh(1, kind="epic", children=[_gh(2, children=[_gh(3)])])

        self.reconciler.reconcile_children("PROJ-1", parent, True, self.ctx)

        self.target_client.search_children.assert_any_call("PROJ-2", is_epic=False)
        fields = self.target_client.create_item.call_args.args[0]
        self.assertEqual(fields["parent"], {"key": "PROJ-2"})

    def test_one_failing_child_does_not_stop_the_rest(self):
        from jirabridge.services.errors import PermissionDeniedError

        self.target_client.create_item.side_effect = [
            PermissionDeniedError("create denied", status_code=403),
            _jira("PROJ-101"),
        ]
        parent = _gh(1, kind="epic", children=[_gh(10), _gh(11)])

        self.reconciler.reconcile_children("PROJ-1", parent, True, self.ctx)

        self.assertEqual(self.target_client.create_item.call_count, 2)
        self.assertEqual(len(self.collector), 1)
        self.assertEqual(self.ctx.stats["errors"], 1)
