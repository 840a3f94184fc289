import math
from datetime import datetime, timezone
from typing import Optional

from .errors import BackupError, DeleteFailed
from .logger import get_logger
from .metrics import RETENTION_POLICY_RUNS_TOTAL, RETENTION_FILES_DELETED_TOTAL, RETENTION_LAST_STATUS
from .models import SweepReport, retention_cutoff

logger = get_logger(__name__)


def retention_enabled(retention_days) -> bool:
    if retention_days is None or isinstance(retention_days, bool):
        return False
    try:
        days = float(retention_days)
    except (TypeError, ValueError):
        return False
    return not math.isnan(days) and days > 0


def sweep(storage, retention_days, now: Optional[datetime] = None) -> SweepReport:
    """
    Deletes every object in the bucket last modified before now - retention_days.

    Does nothing when retention is unset, zero or not a number. Failures are
    logged and recorded in the report; the next tick retries.
    """
    if not retention_enabled(retention_days):
        logger.debug("Retention disabled, skipping sweep.")
        return SweepReport(skipped=True)

    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    report = SweepReport(cutoff=retention_cutoff(now, float(retention_days)))
    logger.info(f"Running retention policy: removing objects older than {report.cutoff.isoformat()}")

    try:
        RETENTION_POLICY_RUNS_TOTAL.inc()
        objects = list(storage.list_objects())
        report.considered = len(objects)

        expired = [obj.key for obj in objects if obj.last_modified < report.cutoff]
        if not expired:
            logger.info("No old files to remove.")
            RETENTION_LAST_STATUS.set(1)
            return report

        report.deleted = list(storage.delete_objects(expired))
        RETENTION_FILES_DELETED_TOTAL.inc(len(report.deleted))
        RETENTION_LAST_STATUS.set(1)
        logger.info(f"✓ Successfully removed {len(report.deleted)} old backup files.")

    except DeleteFailed as e:
        report.deleted = list(e.deleted)
        report.error = str(e)
        RETENTION_FILES_DELETED_TOTAL.inc(len(report.deleted))
        RETENTION_LAST_STATUS.set(0)
        logger.error(
            f"An error occurred while processing clear old backup files "
            f"({len(report.deleted)} removed before the failure): {e}"
        )
    except BackupError as e:
        report.error = str(e)
        RETENTION_LAST_STATUS.set(0)
        logger.error(f"An error occurred while processing clear old backup files: {e}")
    except Exception as e:
        report.error = str(e)
        RETENTION_LAST_STATUS.set(0)
        logger.error(f"An error occurred while processing clear old backup files: {e}", exc_info=True)

    return report
