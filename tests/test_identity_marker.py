import unittest
from unittest.mock import Mock


def _item(key, body):
    from jirabridge.models import WorkItem

    return WorkItem(id=key, title=key, body=body)


class IdentityMarkerTests(unittest.TestCase):
    def test_format_parse_roundtrip(self):
        from jirabridge.services.identity import IdentityMarker

        url = "https://github.com/octo/api/issues/39"
        text = "Some body\n\n----\n\nGH Issue 39\n" + IdentityMarker.format(url) + "\nReporter: alice"
        self.assertEqual(IdentityMarker.format(url), "Upstream URL: https://github.com/octo/api/issues/39")
        self.assertEqual(IdentityMarker.parse(text), url)

    def test_marker_for_39_never_matches_391(self):
        from jirabridge.services.identity import IdentityMarker

        url_39 = "https://github.com/octo/api/issues/39"
        url_391 = "https://github.com/octo/api/issues/391"
        text_391 = "body\nUpstream URL: https://github.com/octo/api/issues/391\nReporter: bob"

        self.assertFalse(IdentityMarker.matches(text_391, url_39))
        self.assertTrue(IdentityMarker.matches(text_391, url_391))

    def test_trailing_slash_and_whitespace_are_tolerated(self):
        from jirabridge.services.identity import IdentityMarker

        url = "https://github.com/octo/api/issues/7"
        self.assertTrue(IdentityMarker.matches("Upstream URL:   https://github.com/octo/api/issues/7/  \r\n", url))
        self.assertEqual(IdentityMarker.parse("Upstream URL: https://github.com/octo/api/issues/7/"), url)

    def test_parse_without_marker(self):
        from jirabridge.services.identity import IdentityMarker

        self.assertIsNone(IdentityMarker.parse("nothing here"))
        self.assertIsNone(IdentityMarker.parse(None))
        self.assertFalse(IdentityMarker.matches("", "https://github.com/o/r/issues/1"))

    def test_parse_issue_url_and_jira_keys(self):
        from jirabridge.services.identity import extract_jira_key, jira_key_order, parse_issue_url

        self.assertEqual(parse_issue_url("https://github.com/octo/api/issues/12"), ("octo", "api", 12))
        self.assertIsNone(parse_issue_url("https://github.com/octo/api/pull/12"))

        body = "See OTHER-3 and **Jira Issue:** [PROJ-42](https://jira.example.com/browse/PROJ-42)"
        self.assertEqual(extract_jira_key(body), "OTHER-3")
        self.assertEqual(extract_jira_key(body, "PROJ"), "PROJ-42")
        self.assertIsNone(extract_jira_key("no keys", "PROJ"))

        self.assertLess(jira_key_order("PROJ-9"), jira_key_order("PROJ-10"))


class UserDirectoryTests(unittest.TestCase):
    def test_lookups_both_ways_first_writer_wins(self):
        from jirabridge.services.identity import UserDirectory

        users = UserDirectory([("alice", "ajira"), ("alice2", "ajira"), ("bob", "bjira")])
        self.assertEqual(users.to_target("alice"), "ajira")
        self.assertEqual(users.to_target("alice2"), "ajira")
        self.assertEqual(users.to_source("ajira"), "alice")
        self.assertIsNone(users.to_target("mallory"))
        self.assertIsNone(users.to_source(None))

    def test_first_target_user_skips_unmapped(self):
        from jirabridge.services.identity import UserDirectory

        users = UserDirectory([("bob", "bjira")])
        self.assertEqual(users.first_target_user(["carol", "bob"]), "bjira")
        self.assertIsNone(users.first_target_user(["carol"]))


class IdentityMatcherTests(unittest.TestCase):
    def _context(self, items=()):
        from jirabridge.models import SyncUnit, UnitContext

        return UnitContext(unit=SyncUnit("octo/api", "api"), target_items=list(items))

    def test_match_prefers_unit_items_without_querying(self):
        from jirabridge.services.identity import IdentityMatcher

        url = "https://github.com/octo/api/issues/39"
        target_client = Mock()
        ctx = self._context(
            [
                _item("PROJ-1", "Upstream URL: https://github.com/octo/api/issues/391"),
                _item("PROJ-2", "Upstream URL: https://github.com/octo/api/issues/39"),
            ]
        )

        match = IdentityMatcher(target_client).match(url, ctx)

        self.assertEqual(match.id, "PROJ-2")
        target_client.search_by_marker.assert_not_called()

    def test_match_falls_back_to_search_and_remembers(self):
        from jirabridge.services.identity import IdentityMatcher

        url = "https://github.com/octo/api/issues/5"
        found = _item("PROJ-77", "x\nUpstream URL: https://github.com/octo/api/issues/5")
        near_miss = _item("PROJ-78", "x\nUpstream URL: https://github.com/octo/api/issues/55")
        target_client = Mock()
        target_client.search_by_marker.return_value = [near_miss, found]
        ctx = self._context()

        match = IdentityMatcher(target_client).match(url, ctx)

        self.assertEqual(match.id, "PROJ-77")
        target_client.search_by_marker.assert_called_once_with("Upstream URL: https://github.com/octo/api/issues/5")
        self.assertEqual([i.id for i in ctx.target_items], ["PROJ-77"])

    def test_no_match_returns_none(self):
        from jirabridge.services.identity import IdentityMatcher

        target_client = Mock()
        target_client.search_by_marker.return_value = []
        self.assertIsNone(IdentityMatcher(target_client).match("https://github.com/o/r/issues/1", self._context()))

    def test_duplicates_pick_lowest_key_and_are_only_logged(self):
        from jirabridge.services.identity import IdentityMatcher

        marker = "Upstream URL: https://github.com/octo/api/issues/3"
        ctx = self._context([_item("PROJ-10", marker), _item("PROJ-9", marker)])
        target_client = Mock()

        match = IdentityMatcher(target_client).match("https://github.com/octo/api/issues/3", ctx)

        self.assertEqual(match.id, "PROJ-9")
        self.assertEqual(ctx.stats["duplicates"], 1)
        target_client.link_items.assert_not_called()

    def test_duplicates_linked_when_link_type_configured(self):
        from jirabridge.services.identity import IdentityMatcher

        marker = "Upstream URL: https://github.com/octo/api/issues/3"
        ctx = self._context([_item("PROJ-10", marker), _item("PROJ-9", marker)])
        target_client = Mock()

        IdentityMatcher(target_client, "Duplicate").match("https://github.com/octo/api/issues/3", ctx)

        target_client.link_items.assert_called_once_with("Duplicate", "PROJ-10", "PROJ-9")
