import unittest
from unittest.mock import Mock


def _reconciler():
    from jirabridge.services.transitions import StatusReconciler

    target_client = Mock()
    target_client.transitions.return_value = [
        {"id": "11", "name": "Start Progress"},
        {"id": "31", "name": "closed"},
        {"id": "41", "name": "New"},
    ]
    return StatusReconciler(target_client, close_name="Closed", reopen_name="New"), target_client


def _item(key, closed):
    from jirabridge.models import ItemState, WorkItem

    return WorkItem(id=key, title=key, state=ItemState.CLOSED if closed else ItemState.OPEN)


class StatusReconcilerTests(unittest.TestCase):
    def test_resolves_transition_by_name_case_insensitively(self):
        reconciler, target_client = _reconciler()
        self.assertTrue(reconciler.transition("PROJ-1", "Closed"))
        target_client.transition_item.assert_called_once_with("PROJ-1", "31")

    def test_missing_transition_is_a_noop(self):
        reconciler, target_client = _reconciler()
        self.assertFalse(reconciler.transition("PROJ-1", "Resolve"))
        target_client.transition_item.assert_not_called()

    def test_available_transitions(self):
        from jirabridge.services.transitions import NamedTransition

        reconciler, _ = _reconciler()
        self.assertIn(NamedTransition(id="41", name="New"), reconciler.available_transitions("PROJ-1"))

    def test_reconcile_status(self):
        reconciler, target_client = _reconciler()

        self.assertTrue(reconciler.reconcile_status(_item("7", True), _item("PROJ-1", False)))
        target_client.transition_item.assert_called_with("PROJ-1", "31")

        self.assertTrue(reconciler.reconcile_status(_item("7", False), _item("PROJ-2", True)))
        target_client.transition_item.assert_called_with("PROJ-2", "41")

        target_client.transition_item.reset_mock()
        self.assertFalse(reconciler.reconcile_status(_item("7", True), _item("PROJ-3", True)))
        self.assertFalse(reconciler.reconcile_status(_item("7", False), _item("PROJ-3", False)))
        target_client.transition_item.assert_not_called()
