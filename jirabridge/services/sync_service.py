"""Issue reconciliation service"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from jirabridge.config import Settings, settings as default_settings
from jirabridge.models import RunDirection, SyncUnit, UnitContext, WorkItem
from jirabridge.services.arbiter import TimestampArbiter
from jirabridge.services.comments import CommentReconciler
from jirabridge.services.errors import (
    DataError,
    ErrorCollector,
    NotFoundError,
    PermissionDeniedError,
    StructuralError,
    SyncError,
    error_collector,
)
from jirabridge.services.github_client import GitHubClient
from jirabridge.services.governor import RequestGovernor
from jirabridge.services.hierarchy import HierarchyReconciler
from jirabridge.services.identity import IdentityMatcher, UserDirectory
from jirabridge.services.jira_client import JiraClient
from jirabridge.services.transitions import StatusReconciler
from jirabridge.services.translator import FieldTranslator, is_epic
from jirabridge.services.writeback import SourceWriteback

logger = logging.getLogger(__name__)


class SyncService:
    """Reconciles configured GitHub repositories with their Jira components"""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        source_client=None,
        target_client=None,
        collector: Optional[ErrorCollector] = None,
    ):
        self.settings = settings or default_settings
        governor = RequestGovernor.from_settings(self.settings)
        self.source = source_client or GitHubClient(
            self.settings.github_token,
            base_url=self.settings.github_api_url,
            governor=governor,
        )
        self.target = target_client or JiraClient.from_settings(self.settings, governor=governor)
        self.collector = collector or error_collector

        self.users = UserDirectory.from_settings(self.settings)
        self.translator = FieldTranslator.from_settings(self.settings, self.users)
        self.arbiter = TimestampArbiter(self.settings.timestamp_tolerance_seconds)
        self.matcher = IdentityMatcher(self.target, self.settings.duplicate_link_type)
        self.comments = CommentReconciler.from_settings(self.settings, self.target)
        self.statuses = StatusReconciler.from_settings(self.settings, self.target)
        self.hierarchy = HierarchyReconciler(
            self.target, self.translator, self.matcher, self.comments, self.statuses, self.collector
        )
        self.writeback = SourceWriteback(
            self.source,
            self.target,
            self.translator,
            self.arbiter,
            self.statuses,
            browse_url=self.settings.jira_browse_url,
            project_key=self.settings.jira_project_key,
        )

    @staticmethod
    def _utcnow() -> datetime:
        return datetime.now(timezone.utc)

    def units(self) -> List[SyncUnit]:
        return [SyncUnit(repository=r, component=c) for r, c in self.settings.repo_components()]

    def default_since(self) -> datetime:
        return self._utcnow() - timedelta(days=self.settings.default_lookback_days)

    def run(
        self,
        since: Optional[datetime] = None,
        direction: RunDirection = RunDirection.BOTH,
    ) -> Dict[str, Any]:
        """Reconcile every configured unit, one after another"""
        if not self.settings.jira_project_key:
            raise ValueError("JIRA_PROJECT_KEY is not set")
        units = self.units()
        since = since or self.default_since()
        started_at = self._utcnow()
        self.collector.clear()
        logger.info(f"Starting sync run (since={since.isoformat()}, direction={direction.value})")

        components = self._component_names()
        unit_reports = []
        for unit in units:
            unit_reports.append(self.sync_unit(unit, since, direction, components))

        failed = sum(1 for r in unit_reports if r["status"] == "failed")
        status = "success" if not len(self.collector) else "partial"
        if unit_reports and failed == len(unit_reports):
            status = "failed"

        report = {
            "status": status,
            "since": since.isoformat(),
            "direction": direction.value,
            "started_at": started_at.isoformat(),
            "finished_at": self._utcnow().isoformat(),
            "units": unit_reports,
            "errors": self.collector.report(),
        }
        logger.info(
            f"Sync run finished: {len(unit_reports)} unit(s), {len(self.collector)} error(s), status={status}"
        )
        return report

    def _component_names(self) -> Optional[set]:
        try:
            return self.target.get_component_names()
        except SyncError as e:
            logger.warning(f"Could not list Jira components ({e}); skipping component validation")
            return None

    def sync_unit(
        self,
        unit: SyncUnit,
        since: Optional[datetime],
        direction: RunDirection = RunDirection.BOTH,
        components: Optional[set] = None,
    ) -> Dict[str, Any]:
        """Sync one repository/component pair; failures stay inside the unit"""
        context = UnitContext(unit=unit, since=since, direction=direction, components=components)
        self.collector.current_unit = str(unit)
        logger.info(f"Starting sync for unit: {unit}")

        status = "success"
        try:
            context.target_items = self.target.list_component_items(unit.component, since)

            if direction.includes_source_to_target:
                self._sync_source_items(context)
            if direction.includes_target_to_source:
                self._sync_target_items(context)
        except Exception as e:
            self.collector.add_error(f"Unit {unit}", e)
            context.bump("errors")
            status = "failed"
        finally:
            error_count = self.collector.flush_unit(str(unit))
            self.collector.current_unit = None

        if status == "success" and error_count:
            status = "partial"
        logger.info(f"Sync completed for unit {unit}: {context.stats}")
        return {
            "unit": unit.repository,
            "component": unit.component,
            "status": status,
            "stats": context.stats,
        }

    # GitHub -> Jira

    def _sync_source_items(self, context: UnitContext):
        items = self.source.list_items(context.unit.repository, context.since)
        for item in items:
            self._isolated(f"GitHub issue {item.url}", context, self.sync_source_item, item, context)

    def _isolated(self, what: str, context: UnitContext, fn, *args):
        try:
            fn(*args)
        except StructuralError:
            raise
        except (NotFoundError, PermissionDeniedError) as e:
            logger.warning(f"Skipping {what}: {e}")
            context.bump("skipped_inaccessible")
            self.collector.add_error(what, e)
        except DataError as e:
            context.bump("skipped")
            self.collector.add_error(what, e)
        except Exception as e:
            context.bump("errors")
            self.collector.add_error(what, e)

    def sync_source_item(self, item: WorkItem, context: UnitContext):
        target = self.matcher.match(item.url, context)
        with_reverse = context.direction.includes_target_to_source

        if target is None:
            if self.writeback.handle_archived(item, context, close_source=with_reverse):
                return
            self._create_target(item, context)
            return

        context.processed_keys.add(target.id)
        decision = self.arbiter.decision(item.updated_at, target.updated_at)
        if decision.from_source:
            fields = self.translator.to_target_fields(
                item,
                is_update=True,
                component=context.unit.component,
                existing=target,
                known_components=context.components,
            )
            changed = self.translator.changed_fields(fields, target)
            if changed:
                self.target.update_item(target.id, changed)
                context.bump("updated")
            if self.statuses.reconcile_status(item, target):
                context.bump("transitions")
            self.comments.reconcile(target.id, item.comments, context)
            self.hierarchy.reconcile_children(
                target.id, item, is_epic(target, self.translator.epic_issue_type_id), context
            )
        else:
            context.bump("skipped")

        if with_reverse:
            self.writeback.apply(item, target, context)

    def _create_target(self, item: WorkItem, context: UnitContext) -> WorkItem:
        fields = self.translator.to_target_fields(
            item,
            is_update=False,
            component=context.unit.component,
            known_components=context.components,
        )
        created = self.target.create_item(fields)
        context.remember(created)
        context.processed_keys.add(created.id)
        context.bump("created")
        logger.info(f"Created {created.id} for {item.url}")

        self.target.add_remote_link(created.id, item.url, f"GitHub issue #{item.number}")
        if context.direction.includes_target_to_source:
            self.writeback.ensure_back_link(item, created.id)
        if item.is_closed and self.statuses.close(created.id):
            context.bump("transitions")
        self.comments.reconcile(created.id, item.comments, context)
        if item.children:
            self.hierarchy.reconcile_children(
                created.id, item, is_epic(created, self.translator.epic_issue_type_id), context
            )
        return created

    # Jira -> GitHub

    def _sync_target_items(self, context: UnitContext):
        for target in self.writeback.pending(context):
            self._isolated(f"Jira issue {target.id}", context, self.writeback.sync_back, target, context)
