import os

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from .config import load_config
from .logger import setup_logging, get_logger
from .routers import backups, system
from .scheduler import run_job, start_schedule
from .storage import S3Storage

setup_logging()
logger = get_logger(__name__)

app = FastAPI(title="db-backup-worker")
Instrumentator().instrument(app).expose(app)

app.state.settings = None
app.state.storage = None
app.state.schedule = None
app.state.last_report = None


def run_tick():
    """Run one backup job with the current settings and remember its report."""
    settings = app.state.settings
    report = run_job(
        settings.targets,
        app.state.storage,
        retention_days=settings.retention_days,
        scratch_dir=settings.scratch_dir,
        timeout=settings.dump_timeout,
    )
    app.state.last_report = report
    return report


app.state.run_tick = run_tick


@app.on_event("startup")
def startup_event():
    if app.state.settings is None:
        app.state.settings = load_config()
    if app.state.storage is None:
        app.state.storage = S3Storage.from_settings(app.state.settings)

    settings = app.state.settings
    logger.info(f"Backing up {len(settings.targets)} database(s) to bucket '{settings.bucket}'.")
    app.state.schedule = start_schedule(
        run_tick,
        cron=settings.schedule,
        run_on_startup=settings.run_on_startup,
        timezone=settings.timezone,
    )

@app.on_event("shutdown")
def shutdown_event():
    if app.state.schedule is not None:
        app.state.schedule.stop()

app.include_router(backups.router, prefix="/backups", tags=["backups"])
app.include_router(system.router, prefix="/system", tags=["system"])


def run():
    import uvicorn

    uvicorn.run(
        "backup_worker.main:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
    )
