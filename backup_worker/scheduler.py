from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .backup_manager import run_backups
from .logger import get_logger
from .models import DatabaseTarget, JobReport
from .retention import sweep

logger = get_logger(__name__)

JOB_ID = "backup_job"


def run_job(
    targets: Sequence[DatabaseTarget],
    storage,
    retention_days=None,
    scratch_dir: Optional[str] = None,
    timeout: Optional[float] = None,
) -> JobReport:
    """
    One tick: backs up every target and sweeps old objects concurrently.
    Both tasks are awaited; a failure in one does not cancel the other.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="backup-job") as pool:
        backups_future = pool.submit(run_backups, targets, storage, scratch_dir, timeout)
        sweep_future = pool.submit(sweep, storage, retention_days)

    report = JobReport()
    try:
        report.backups = backups_future.result()
    except Exception as e:
        logger.error(f"Backup run aborted unexpectedly: {e}", exc_info=True)
    try:
        report.sweep = sweep_future.result()
    except Exception as e:
        logger.error(f"Retention sweep aborted unexpectedly: {e}", exc_info=True)
    return report


class ScheduleHandle:
    """Owns the background scheduler started by start_schedule()."""

    def __init__(self, scheduler: Optional[BackgroundScheduler] = None, cron: Optional[str] = None):
        self.scheduler = scheduler
        self.cron = cron

    @property
    def running(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    @property
    def next_run_time(self):
        if not self.running:
            return None
        job = self.scheduler.get_job(JOB_ID)
        return job.next_run_time if job else None

    def stop(self):
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Backup schedule stopped.")


def start_schedule(
    job: Callable[[], object],
    cron: Optional[str] = None,
    run_on_startup: bool = False,
    timezone: str = "UTC",
    scheduler: Optional[BackgroundScheduler] = None,
) -> ScheduleHandle:
    handle = ScheduleHandle(cron=cron)

    if cron:
        scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        scheduler.add_job(
            job,
            trigger=CronTrigger.from_crontab(cron, timezone=timezone),
            id=JOB_ID,
            name="Backup databases and enforce retention",
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        handle.scheduler = scheduler
        logger.info(f"Backups configured on Cron job schedule: {cron}")

    if run_on_startup:
        logger.info("run_on_startup enabled, backing up now...")
        try:
            job()
        except Exception as e:
            logger.error(f"Startup backup run failed: {e}", exc_info=True)

    if not cron and not run_on_startup:
        logger.info("No schedule and run_on_startup disabled: nothing to do.")

    return handle
