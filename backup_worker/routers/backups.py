from fastapi import APIRouter, Depends, HTTPException
from typing import List

from ..backup_manager import run_backups
from ..dependencies import get_settings, get_storage
from ..errors import ListFailed
from ..logger import get_logger
from ..schemas import BatchReportDetail, StoredObjectInfo

logger = get_logger(__name__)

router = APIRouter()


@router.post("/run", response_model=BatchReportDetail)
def run_backups_now(settings=Depends(get_settings), storage=Depends(get_storage)):
    """Back up every configured database now."""
    logger.info("On-demand backup requested.")
    report = run_backups(
        settings.targets, storage, scratch_dir=settings.scratch_dir, timeout=settings.dump_timeout
    )
    return BatchReportDetail.model_validate(report)


@router.get("", response_model=List[StoredObjectInfo])
def list_backups(storage=Depends(get_storage)):
    """List every object stored in the backup bucket."""
    try:
        objects = list(storage.list_objects())
    except ListFailed as e:
        logger.error(f"Failed to list backups: {e}")
        raise HTTPException(status_code=502, detail="Failed to list backups from storage")
    logger.debug(f"Found {len(objects)} stored backups.")
    return [StoredObjectInfo.model_validate(obj) for obj in objects]
