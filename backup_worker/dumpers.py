import abc
import os
import subprocess
import tarfile
import tempfile
from datetime import datetime
from typing import Dict, List, Optional

from .errors import CompressionFailed, DumpCommandFailed, UnsupportedEngine
from .error_parser import parse_backup_error
from .logger import get_logger
from .models import BackupArtifact, DatabaseTarget, EngineKind
from .utils import safe_component

logger = get_logger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d_%H:%M:%S"


class DumpStrategy(abc.ABC):
    kind: EngineKind

    @abc.abstractmethod
    def build_dump_command(self, target: DatabaseTarget, dump_path: str) -> List[str]:
        pass

    @abc.abstractmethod
    def build_version_probe(self) -> List[str]:
        pass

    def build_env(self, target: DatabaseTarget) -> Dict[str, str]:
        return os.environ.copy()


class PostgresDump(DumpStrategy):
    kind = EngineKind.POSTGRES

    def build_dump_command(self, target, dump_path):
        # pg_dump accepts a full connection string as --dbname
        return [
            "pg_dump", f"--dbname={target.uri_without_password()}",
            "--format=c", f"--file={dump_path}",
        ]

    def build_version_probe(self):
        return ["psql", "--version"]

    def build_env(self, target):
        env = super().build_env(target)
        if target.password:
            env["PGPASSWORD"] = target.password
        return env


class MongoDump(DumpStrategy):
    kind = EngineKind.MONGO

    def build_dump_command(self, target, dump_path):
        return ["mongodump", f"--uri={target.uri}", f"--archive={dump_path}"]

    def build_version_probe(self):
        return ["mongodump", "--version"]


class MySQLDump(DumpStrategy):
    kind = EngineKind.MYSQL

    def build_dump_command(self, target, dump_path):
        cmd = ["mysqldump"]
        if target.host:
            cmd.append(f"--host={target.host}")
        if target.port is not None:
            cmd.append(f"--port={target.port}")
        if target.user:
            cmd.append(f"--user={target.user}")
        cmd.append(f"--result-file={dump_path}")
        cmd.append(target.database)
        return cmd

    def build_version_probe(self):
        return ["mysql", "--version"]

    def build_env(self, target):
        env = super().build_env(target)
        if target.password:
            env["MYSQL_PWD"] = target.password
        return env


STRATEGIES: Dict[EngineKind, DumpStrategy] = {
    strategy.kind: strategy for strategy in (PostgresDump(), MongoDump(), MySQLDump())
}


def get_strategy(target: DatabaseTarget) -> DumpStrategy:
    strategy = STRATEGIES.get(target.kind)
    if strategy is None:
        raise UnsupportedEngine(target.engine)
    return strategy


def build_filename(target: DatabaseTarget, now: datetime) -> str:
    timestamp = now.strftime(TIMESTAMP_FORMAT)
    return (
        f"backup-{safe_component(target.engine)}-{timestamp}-"
        f"{safe_component(target.database)}-{safe_component(target.host)}.tar.gz"
    )


def probe_version(strategy: DumpStrategy, target: DatabaseTarget) -> Optional[str]:
    cmd = strategy.build_version_probe()
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        logger.warning(f"Failed to get {target.engine} client version: {e}")
        return None

    if result.returncode != 0:
        logger.warning(f"Failed to get {target.engine} client version: {result.stderr.strip()}")
        return None

    version = result.stdout.strip()
    logger.info(f"Using {target.engine} client version: {version}")
    return version


def _run_dump(strategy: DumpStrategy, target: DatabaseTarget, dump_path: str, timeout: Optional[float]):
    cmd = strategy.build_dump_command(target, dump_path)
    logger.debug(f"Executing {cmd[0]} for {target.label} ({target.redacted_uri})")

    try:
        result = subprocess.run(
            cmd, env=strategy.build_env(target), capture_output=True, text=True, timeout=timeout
        )
    except FileNotFoundError as e:
        stderr = f"command not found: {cmd[0]}"
        raise DumpCommandFailed(
            f"{cmd[0]} failed: {stderr}", stderr=stderr,
            summary=parse_backup_error(stderr, target.kind),
        ) from e
    except subprocess.TimeoutExpired as e:
        stderr = f"{cmd[0]} timed out after {timeout}s"
        raise DumpCommandFailed(
            stderr, stderr=stderr, summary=parse_backup_error(stderr, target.kind),
        ) from e
    except OSError as e:
        stderr = f"could not start {cmd[0]}: {e}"
        raise DumpCommandFailed(
            f"{cmd[0]} failed: {stderr}", stderr=stderr,
            summary=parse_backup_error(stderr, target.kind),
        ) from e

    if result.returncode != 0:
        raise DumpCommandFailed(
            f"{cmd[0]} failed with exit code {result.returncode}: {result.stderr.strip()}",
            returncode=result.returncode,
            stderr=result.stderr,
            summary=parse_backup_error(result.stderr, target.kind),
        )


def compress(dump_path: str, archive_path: str) -> None:
    try:
        with tarfile.open(archive_path, "w:gz") as tar:
            tar.add(dump_path, arcname=os.path.basename(dump_path))
    except (OSError, tarfile.TarError) as e:
        raise CompressionFailed(f"Failed to create archive {archive_path}: {e}") from e


def dump(
    target: DatabaseTarget,
    scratch_dir: Optional[str] = None,
    now: Optional[datetime] = None,
    timeout: Optional[float] = None,
) -> BackupArtifact:
    """
    Dumps one database with its vendor tool and wraps the raw dump into a
    .tar.gz archive inside `scratch_dir`.

    Raises UnsupportedEngine before any subprocess is started when the engine
    is unknown. Partially written files are removed before any error propagates.
    """
    strategy = get_strategy(target)

    scratch_dir = scratch_dir or tempfile.gettempdir()
    filename = build_filename(target, now or datetime.now())
    archive_path = os.path.join(scratch_dir, filename)
    artifact = BackupArtifact(
        filename=filename,
        path=archive_path,
        dump_path=f"{archive_path}.dump",
        engine=target.engine,
        label=target.label,
    )

    probe_version(strategy, target)

    try:
        _run_dump(strategy, target, artifact.dump_path, timeout)
        compress(artifact.dump_path, artifact.path)
    except Exception:
        artifact.cleanup()
        raise

    logger.debug(f"Created archive {artifact.path} for {target.label}")
    return artifact
