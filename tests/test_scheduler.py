import threading
import unittest
from unittest.mock import Mock


class _Service:
    def __init__(self, report=None, started=None, release=None):
        self.report = report or {"status": "success", "units": [], "errors": []}
        self.calls = []
        self._started = started
        self._release = release

    def run(self, since=None, direction=None):
        self.calls.append((since, direction))
        if self._started is not None:
            self._started.set()
            self._release.wait(5)
        return self.report


class SyncSchedulerTests(unittest.TestCase):
    def test_run_now_stores_last_report(self):
        from jirabridge.models import RunDirection
        from jirabridge.scheduler import SyncScheduler

        service = _Service()
        sched = SyncScheduler(service_factory=lambda: service)

        report = sched.run_now(direction=RunDirection.SOURCE_TO_TARGET)

        self.assertIs(report, service.report)
        self.assertIs(sched.last_report, service.report)
        self.assertEqual(service.calls, [(None, RunDirection.SOURCE_TO_TARGET)])

    def test_concurrent_run_is_rejected(self):
        from jirabridge.scheduler import SyncAlreadyRunning, SyncScheduler

        started, release = threading.Event(), threading.Event()
        service = _Service(started=started, release=release)
        sched = SyncScheduler(service_factory=lambda: service)

        worker = threading.Thread(target=sched.run_now)
        worker.start()
        try:
            self.assertTrue(started.wait(5))
            with self.assertRaises(SyncAlreadyRunning):
                sched.run_now()
        finally:
            release.set()
            worker.join(5)

        self.assertEqual(len(service.calls), 1)

    def test_scheduled_job_skips_when_busy_and_swallows_errors(self):
        from jirabridge.scheduler import SyncAlreadyRunning, SyncScheduler

        sched = SyncScheduler.__new__(SyncScheduler)
        sched.run_now = Mock(side_effect=SyncAlreadyRunning("busy"))
        sched._sync_job()

        sched.run_now = Mock(side_effect=RuntimeError("boom"))
        with self.assertLogs("jirabridge.scheduler", level="ERROR"):
            sched._sync_job()

    def test_schedule_registers_single_instance_interval_job(self):
        from jirabridge.scheduler import JOB_ID, SyncScheduler

        sched = SyncScheduler(service_factory=_Service)
        sched.scheduler = Mock()

        sched.schedule(15)

        kwargs = sched.scheduler.add_job.call_args.kwargs
        self.assertEqual(kwargs["id"], JOB_ID)
        self.assertEqual(kwargs["max_instances"], 1)
        self.assertTrue(kwargs["coalesce"])
        self.assertTrue(kwargs["replace_existing"])
        self.assertEqual(kwargs["trigger"].interval.total_seconds(), 15 * 60)
