from fastapi import APIRouter, Depends, Request

from ..dependencies import get_settings, get_storage
from ..logger import get_logger
from ..retention import sweep
from ..schemas import JobReportDetail, ScheduleStatus, SweepReportDetail

logger = get_logger(__name__)

router = APIRouter()


@router.post("/retention/run", response_model=SweepReportDetail)
def run_retention_now(settings=Depends(get_settings), storage=Depends(get_storage)):
    """Run one retention sweep now."""
    logger.info("On-demand retention sweep requested.")
    return SweepReportDetail.model_validate(sweep(storage, settings.retention_days))


@router.post("/run", response_model=JobReportDetail)
def run_job_now(request: Request):
    """Run a full tick (backups and retention) now."""
    logger.info("On-demand backup job requested.")
    report = request.app.state.run_tick()
    return JobReportDetail.model_validate(report)


@router.get("/status", response_model=ScheduleStatus)
def get_status(request: Request, settings=Depends(get_settings)):
    schedule = request.app.state.schedule
    last_run = request.app.state.last_report
    return ScheduleStatus(
        schedule=settings.schedule,
        running=bool(schedule and schedule.running),
        next_run_time=schedule.next_run_time if schedule else None,
        retention_days=settings.retention_days,
        targets=[target.label for target in settings.targets],
        last_run=JobReportDetail.model_validate(last_run) if last_run else None,
    )
