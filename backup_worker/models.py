import enum
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
from urllib.parse import quote, unquote, urlsplit, urlunsplit

from .errors import InvalidTarget


class EngineKind(enum.Enum):
    POSTGRES = "postgres"
    MONGO = "mongo"
    MYSQL = "mysql"


# URI scheme token -> engine kind
ENGINE_ALIASES = {
    "postgresql": EngineKind.POSTGRES,
    "postgres": EngineKind.POSTGRES,
    "mongodb": EngineKind.MONGO,
    "mongodb+srv": EngineKind.MONGO,
    "mysql": EngineKind.MYSQL,
}


@dataclass(frozen=True)
class DatabaseTarget:
    engine: str
    host: str
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    database: str = ""
    uri: str = field(default="", repr=False)

    @classmethod
    def from_uri(cls, uri: str) -> "DatabaseTarget":
        """Parse `<engine>://[user[:password]@]host[:port]/dbname` into a target."""
        uri = (uri or "").strip()
        parts = urlsplit(uri)
        if not parts.scheme or not parts.netloc:
            raise InvalidTarget(f"Not a database connection URI: {_redact(uri)}")
        try:
            port = parts.port
        except ValueError as e:
            raise InvalidTarget(f"Invalid port in {_redact(uri)}: {e}") from e

        return cls(
            engine=parts.scheme.lower(),
            host=parts.hostname or "",
            port=port,
            user=unquote(parts.username) if parts.username else None,
            password=unquote(parts.password) if parts.password else None,
            database=unquote(parts.path.lstrip("/")),
            uri=uri,
        )

    @property
    def kind(self) -> Optional[EngineKind]:
        return ENGINE_ALIASES.get(self.engine)

    @property
    def label(self) -> str:
        return f"{self.engine}/{self.database}@{self.host}"

    @property
    def redacted_uri(self) -> str:
        return _redact(self.uri)

    def uri_without_password(self) -> str:
        parts = urlsplit(self.uri)
        if parts.password is None:
            return self.uri
        netloc = parts.hostname or ""
        if ":" in netloc:
            netloc = f"[{netloc}]"
        if parts.port is not None:
            netloc = f"{netloc}:{parts.port}"
        if parts.username:
            netloc = f"{quote(unquote(parts.username), safe='')}@{netloc}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _redact(uri: str) -> str:
    parts = urlsplit(uri)
    if not parts.password:
        return uri
    userinfo, _, hostinfo = parts.netloc.rpartition("@")
    user = userinfo.split(":", 1)[0]
    return urlunsplit((parts.scheme, f"{user}:<REDACTED>@{hostinfo}", parts.path, parts.query, parts.fragment))


@dataclass(frozen=True)
class BackupArtifact:
    filename: str
    path: str
    dump_path: str
    engine: str
    label: str

    def read_bytes(self) -> bytes:
        with open(self.path, "rb") as f:
            return f.read()

    def cleanup(self) -> int:
        """Remove the archive and the raw dump. Returns how many files were removed."""
        removed = 0
        for file_path in (self.path, self.dump_path):
            try:
                os.remove(file_path)
                removed += 1
            except FileNotFoundError:
                pass
        return removed


@dataclass(frozen=True)
class StoredObject:
    key: str
    last_modified: datetime
    size: int = 0


def retention_cutoff(now: datetime, retention_days: float) -> datetime:
    return now - timedelta(days=retention_days)


@dataclass
class TargetResult:
    label: str
    engine: str
    database: str
    host: str
    status: str = "failed"
    key: Optional[str] = None
    size_bytes: Optional[int] = None
    duration_seconds: float = 0.0
    error: Optional[str] = None
    error_summary: Optional[str] = None

    @classmethod
    def for_target(cls, target: DatabaseTarget) -> "TargetResult":
        return cls(label=target.label, engine=target.engine, database=target.database, host=target.host)

    @property
    def ok(self) -> bool:
        return self.status == "completed"


@dataclass
class BatchReport:
    started_at: datetime
    finished_at: Optional[datetime] = None
    results: List[TargetResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)


@dataclass
class SweepReport:
    skipped: bool = False
    cutoff: Optional[datetime] = None
    considered: int = 0
    deleted: List[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class JobReport:
    backups: Optional[BatchReport] = None
    sweep: Optional[SweepReport] = None
