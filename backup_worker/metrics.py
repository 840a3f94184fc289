from prometheus_client import Counter, Histogram, Gauge

BACKUPS_TOTAL = Counter(
    "backups_total",
    "Total number of backups.",
    ["database_name", "status"]
)

BACKUP_DURATION_SECONDS = Histogram(
    "backup_duration_seconds",
    "Duration of backup operations in seconds.",
    ["database_name"]
)

BACKUP_SIZE_BYTES = Gauge(
    "backup_size_bytes",
    "Size of the last successful backup archive in bytes.",
    ["database_name"]
)

BACKUP_LAST_STATUS = Gauge(
    "backup_last_status",
    "Status of the last backup (1 for success, 0 for failure).",
    ["database_name"]
)

BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS = Gauge(
    "backup_last_success_timestamp_seconds",
    "Timestamp of the last successful backup upload.",
    ["database_name"]
)

DISK_SPACE_AVAILABLE_BYTES = Gauge(
    "disk_space_available_bytes",
    "Available disk space in the scratch directory in bytes."
)

RETENTION_POLICY_RUNS_TOTAL = Counter(
    "retention_policy_runs_total",
    "Total number of retention sweeps that listed the bucket."
)

RETENTION_FILES_DELETED_TOTAL = Counter(
    "retention_files_deleted_total",
    "Total number of objects deleted by the retention sweep."
)

RETENTION_LAST_STATUS = Gauge(
    "retention_last_status",
    "Status of the last retention sweep (1 for success, 0 for failure)."
)
