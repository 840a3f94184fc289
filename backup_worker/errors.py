class BackupError(Exception):
    """Base class for every failure raised by the backup pipeline."""


class InvalidTarget(BackupError):
    pass


class UnsupportedEngine(BackupError):
    def __init__(self, engine: str):
        super().__init__(f"Unsupported database engine: {engine}")
        self.engine = engine


class DumpCommandFailed(BackupError):
    def __init__(self, message: str, returncode=None, stderr: str = "", summary: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
        self.summary = summary


class CompressionFailed(BackupError):
    pass


class UploadFailed(BackupError):
    pass


class ListFailed(BackupError):
    pass


class DeleteFailed(BackupError):
    def __init__(self, message: str, deleted=None):
        super().__init__(message)
        self.deleted = list(deleted or [])
