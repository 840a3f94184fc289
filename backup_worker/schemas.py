from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


class TargetResultDetail(BaseModel):
    label: str
    engine: str
    database: str
    host: str
    status: str
    key: Optional[str] = None
    size_bytes: Optional[int] = None
    duration_seconds: float
    error: Optional[str] = None
    error_summary: Optional[str] = None

    class Config:
        from_attributes = True

class BatchReportDetail(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    succeeded: int
    failed: int
    results: List[TargetResultDetail]

    class Config:
        from_attributes = True

class SweepReportDetail(BaseModel):
    skipped: bool
    cutoff: Optional[datetime] = None
    considered: int
    deleted: List[str]
    error: Optional[str] = None

    class Config:
        from_attributes = True

class JobReportDetail(BaseModel):
    backups: Optional[BatchReportDetail] = None
    sweep: Optional[SweepReportDetail] = None

    class Config:
        from_attributes = True

class StoredObjectInfo(BaseModel):
    key: str
    last_modified: datetime
    size: int

    class Config:
        from_attributes = True

class ScheduleStatus(BaseModel):
    schedule: Optional[str] = None
    running: bool
    next_run_time: Optional[datetime] = None
    retention_days: Optional[float] = None
    targets: List[str]
    last_run: Optional[JobReportDetail] = None
