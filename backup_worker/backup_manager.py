import tempfile
import time
from datetime import datetime, timezone
from typing import Optional, Sequence

import psutil

from .dumpers import dump
from .errors import BackupError, DumpCommandFailed, UploadFailed
from .logger import get_logger
from .metrics import (
    BACKUPS_TOTAL, BACKUP_DURATION_SECONDS, BACKUP_SIZE_BYTES, BACKUP_LAST_STATUS,
    BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS, DISK_SPACE_AVAILABLE_BYTES
)
from .models import BackupArtifact, BatchReport, DatabaseTarget, TargetResult

logger = get_logger(__name__)


def upload_artifact(artifact: BackupArtifact, storage) -> int:
    """Upload the archive under its filename. Returns the number of bytes sent."""
    try:
        data = artifact.read_bytes()
    except OSError as e:
        raise UploadFailed(f"Could not read archive {artifact.path}: {e}") from e

    storage.put_object(key=artifact.filename, body=data)
    return len(data)


def _record_disk_space(scratch_dir: str):
    try:
        usage = psutil.disk_usage(scratch_dir)
    except OSError as e:
        logger.debug(f"Could not read disk usage for {scratch_dir}: {e}")
        return
    DISK_SPACE_AVAILABLE_BYTES.set(usage.free)


def run_backup(
    target: DatabaseTarget,
    storage,
    scratch_dir: Optional[str] = None,
    timeout: Optional[float] = None,
) -> TargetResult:
    """Dump, upload and clean up one database. Never raises."""
    start_time = time.time()
    result = TargetResult.for_target(target)

    try:
        artifact = dump(target, scratch_dir=scratch_dir, timeout=timeout)
        try:
            result.size_bytes = upload_artifact(artifact, storage)
            result.key = artifact.filename
            result.status = "completed"
        finally:
            try:
                removed = artifact.cleanup()
                logger.debug(f"Removed {removed} temporary file(s) for {target.label}")
            except OSError as e:
                logger.warning(f"Failed to remove temporary files for {target.label}: {e}")

        logger.info(f"✓ Successfully uploaded db backup for database {target.engine} {target.database} {target.host}.")

    except DumpCommandFailed as e:
        result.error = str(e)
        result.error_summary = e.summary
        logger.error(
            f"An error occurred while processing the database {target.engine} {target.database}, "
            f"host: {target.host}: {e}"
        )
    except BackupError as e:
        result.error = str(e)
        logger.error(
            f"An error occurred while processing the database {target.engine} {target.database}, "
            f"host: {target.host}: {e}"
        )
    except Exception as e:
        result.error = str(e)
        logger.error(f"Backup failed for db '{target.label}': {e}", exc_info=True)

    finally:
        result.duration_seconds = time.time() - start_time

        BACKUPS_TOTAL.labels(database_name=target.label, status=result.status).inc()
        BACKUP_DURATION_SECONDS.labels(database_name=target.label).observe(result.duration_seconds)
        BACKUP_LAST_STATUS.labels(database_name=target.label).set(1 if result.ok else 0)
        if result.ok:
            BACKUP_SIZE_BYTES.labels(database_name=target.label).set(result.size_bytes or 0)
            BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS.labels(database_name=target.label).set(time.time())

    return result


def run_backups(
    targets: Sequence[DatabaseTarget],
    storage,
    scratch_dir: Optional[str] = None,
    timeout: Optional[float] = None,
) -> BatchReport:
    """
    Backs up every target in order. A failing target is recorded in the
    report and the remaining targets still run.
    """
    report = BatchReport(started_at=datetime.now(timezone.utc))

    if not targets:
        logger.info("No databases defined.")
        report.finished_at = datetime.now(timezone.utc)
        return report

    scratch_dir = scratch_dir or tempfile.gettempdir()
    _record_disk_space(scratch_dir)

    total = len(targets)
    for index, target in enumerate(targets, start=1):
        logger.info(f"[{index}/{total}] {target.label} Backup in progress...")
        report.results.append(run_backup(target, storage, scratch_dir=scratch_dir, timeout=timeout))

    report.finished_at = datetime.now(timezone.utc)
    logger.info(f"Backup run finished: {report.succeeded} succeeded, {report.failed} failed.")
    return report
