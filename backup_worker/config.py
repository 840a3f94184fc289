import math
import os
from dataclasses import dataclass, field
from typing import List, Optional

import yaml

from .errors import InvalidTarget
from .logger import get_logger
from .models import DatabaseTarget

logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = "config.yaml"

# setting name -> (environment variable, key inside the yaml "storage" section)
REQUIRED_STORAGE_SETTINGS = {
    "access_key": ("AWS_ACCESS_KEY_ID", "access_key"),
    "secret_key": ("AWS_SECRET_ACCESS_KEY", "secret_key"),
    "region": ("AWS_S3_REGION", "region"),
    "endpoint": ("AWS_S3_ENDPOINT", "endpoint"),
    "bucket": ("AWS_S3_BUCKET", "bucket"),
}


@dataclass
class Settings:
    access_key: str
    secret_key: str = field(repr=False)
    region: str
    endpoint: str
    bucket: str
    databases: List[str] = field(default_factory=list, repr=False)
    targets: List[DatabaseTarget] = field(default_factory=list)
    schedule: Optional[str] = None
    run_on_startup: bool = False
    retention_days: Optional[float] = None
    scratch_dir: Optional[str] = None
    dump_timeout: Optional[float] = None
    timezone: str = "UTC"


def _read_yaml(path: str) -> dict:
    if not os.path.exists(path):
        return {}

    with open(path, "r") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing {path}: {e}")
            raise


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


def _as_number(value, name: str) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring {name}={value!r}: not a number.")
        return None
    if math.isnan(number):
        return None
    return number


def _split_databases(value) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [uri.strip() for uri in value if uri and str(uri).strip()]


def parse_targets(uris: List[str]) -> List[DatabaseTarget]:
    targets = []
    for uri in uris:
        try:
            targets.append(DatabaseTarget.from_uri(uri))
        except InvalidTarget as e:
            logger.warning(f"Skipping a database configuration: {e}")
    return targets


def load_config(path: Optional[str] = None, environ=None) -> Settings:
    """
    Builds the settings from an optional YAML file overlaid with environment variables.
    Environment variables win over the file.
    """
    environ = os.environ if environ is None else environ
    path = path or environ.get("BACKUP_CONFIG", DEFAULT_CONFIG_PATH)

    yaml_config = _read_yaml(path)
    if yaml_config:
        logger.info(f"Loaded configuration from {path}.")
    storage_conf = yaml_config.get("storage", {}) or {}

    values = {}
    for name, (env_var, yaml_key) in REQUIRED_STORAGE_SETTINGS.items():
        value = environ.get(env_var) or storage_conf.get(yaml_key)
        if not value:
            raise ValueError(f"Environment variable {env_var} is required")
        values[name] = value

    databases = _split_databases(environ.get("DATABASES") or yaml_config.get("databases"))

    run_on_startup = environ.get("RUN_ON_STARTUP") or None
    if run_on_startup is None:
        run_on_startup = yaml_config.get("run_on_startup", False)

    retention_days = environ.get("RETENTION_DAYS") or yaml_config.get("retention_days")
    dump_timeout = environ.get("DUMP_TIMEOUT") or yaml_config.get("dump_timeout")

    settings = Settings(
        databases=databases,
        targets=parse_targets(databases),
        schedule=environ.get("CRON") or yaml_config.get("schedule") or None,
        run_on_startup=_as_bool(run_on_startup),
        retention_days=_as_number(retention_days, "retention_days"),
        scratch_dir=environ.get("SCRATCH_DIR") or yaml_config.get("scratch_dir") or None,
        dump_timeout=_as_number(dump_timeout, "dump_timeout"),
        timezone=environ.get("TZ") or yaml_config.get("timezone") or "UTC",
        **values,
    )
    logger.debug(
        f"Configuration: bucket={settings.bucket}, endpoint={settings.endpoint}, "
        f"targets={[t.label for t in settings.targets]}, schedule={settings.schedule}, "
        f"retention_days={settings.retention_days}"
    )
    return settings
