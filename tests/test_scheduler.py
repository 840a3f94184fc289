"""Tests for the job runner and schedule binding."""

import logging
import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

from backup_worker.models import BatchReport, SweepReport
from backup_worker.scheduler import JOB_ID, run_job, start_schedule


class TestRunJob:
    """Test that one tick runs backups and the sweep side by side."""

    def test_runs_both_tasks(self):
        storage = MagicMock()
        batch = BatchReport(started_at=datetime.now(timezone.utc))
        with patch("backup_worker.scheduler.run_backups", return_value=batch) as mock_backups, \
                patch("backup_worker.scheduler.sweep", return_value=SweepReport(skipped=True)) as mock_sweep:
            report = run_job(["target"], storage, retention_days=7, scratch_dir="/scratch", timeout=60)

        mock_backups.assert_called_once_with(["target"], storage, "/scratch", 60)
        mock_sweep.assert_called_once_with(storage, 7)
        assert report.backups is batch
        assert report.sweep.skipped

    def test_tasks_run_concurrently(self):
        sweep_started = threading.Event()

        def slow_backups(*args):
            # only completes if the sweep is running at the same time
            assert sweep_started.wait(timeout=5)
            return BatchReport(started_at=datetime.now(timezone.utc))

        def fake_sweep(*args):
            sweep_started.set()
            return SweepReport()

        with patch("backup_worker.scheduler.run_backups", side_effect=slow_backups), \
                patch("backup_worker.scheduler.sweep", side_effect=fake_sweep):
            report = run_job([], MagicMock(), retention_days=7)

        assert report.backups is not None
        assert report.sweep is not None

    def test_failure_in_one_task_does_not_cancel_the_other(self):
        with patch("backup_worker.scheduler.run_backups", side_effect=RuntimeError("boom")), \
                patch("backup_worker.scheduler.sweep", return_value=SweepReport()) as mock_sweep:
            report = run_job([], MagicMock(), retention_days=7)

        mock_sweep.assert_called_once()
        assert report.backups is None
        assert report.sweep is not None


class TestStartSchedule:
    """Test the schedule handle lifecycle."""

    def test_nothing_configured(self, caplog):
        job = MagicMock()
        with caplog.at_level(logging.INFO):
            handle = start_schedule(job)

        job.assert_not_called()
        assert not handle.running
        assert handle.next_run_time is None
        assert "nothing to do" in caplog.text
        handle.stop()

    def test_run_on_startup_fires_once_synchronously(self):
        job = MagicMock()
        handle = start_schedule(job, run_on_startup=True)

        job.assert_called_once_with()
        assert not handle.running

    def test_startup_failure_is_logged_not_raised(self, caplog):
        job = MagicMock(side_effect=RuntimeError("dump tool hung"))
        with caplog.at_level(logging.ERROR):
            start_schedule(job, run_on_startup=True)
        assert "Startup backup run failed" in caplog.text

    def test_cron_registers_recurring_job(self):
        job = MagicMock()
        handle = start_schedule(job, cron="0 3 * * *", timezone="UTC")
        try:
            assert handle.running
            assert handle.cron == "0 3 * * *"
            registered = handle.scheduler.get_job(JOB_ID)
            assert registered.max_instances == 1
            assert registered.coalesce is True
            assert handle.next_run_time is not None
            assert handle.next_run_time.hour == 3
            job.assert_not_called()
        finally:
            handle.stop()

        assert not handle.running
        # stopping twice is harmless
        handle.stop()

    def test_cron_and_run_on_startup(self):
        job = MagicMock()
        handle = start_schedule(job, cron="*/5 * * * *", run_on_startup=True)
        try:
            job.assert_called_once_with()
            assert handle.running
        finally:
            handle.stop()

    def test_uses_given_scheduler(self):
        scheduler = MagicMock()
        job = MagicMock()
        handle = start_schedule(job, cron="0 1 * * *", scheduler=scheduler)

        scheduler.add_job.assert_called_once()
        kwargs = scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == JOB_ID
        assert kwargs["max_instances"] == 1
        scheduler.start.assert_called_once_with()
        assert handle.scheduler is scheduler
