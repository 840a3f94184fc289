# backup_worker/error_parser.py
from .models import EngineKind


def parse_backup_error(stderr: str, kind) -> str:
    """
    Parses the stderr output from a dump command and returns a human-readable summary.
    """
    stderr = (stderr or "").lower()

    if "timed out" in stderr:
        return "Timeout: The dump command did not finish within the configured limit."
    if "command not found" in stderr:
        return "Missing Tool: The dump client is not installed in this environment."

    if kind == EngineKind.POSTGRES:
        if "password authentication failed" in stderr:
            return "Authentication Error: The provided password was rejected."
        if "authentication failed" in stderr:
            return "Authentication Error: The username or password is incorrect."
        if "does not exist" in stderr and "database" in stderr:
            return "Database Error: The specified database does not exist."
        if "connection refused" in stderr:
            return "Connection Error: Could not connect to the database server. Check the host and port."
        if "could not translate host name" in stderr:
            return "Connection Error: The host name could not be resolved. Check the server address."
        if "timeout expired" in stderr:
            return "Connection Error: Timed out while connecting to the server."
        if "permission denied" in stderr:
            return "Permission Error: The user lacks the privileges required to run the backup."
        if "server version mismatch" in stderr:
            return "Version Error: pg_dump is older than the server. Upgrade the client tools."

    elif kind == EngineKind.MONGO:
        if "authentication failed" in stderr:
            return "Authentication Error: The username or password is incorrect."
        if "could not connect to server" in stderr:
            return "Connection Error: Could not connect to the server. Check the address and port."
        if "failed to connect" in stderr:
            return "Connection Error: Failed to connect to the server. Check the network configuration."

    elif kind == EngineKind.MYSQL:
        if "access denied" in stderr:
            return "Authentication Error: The username or password is incorrect."
        if "unknown database" in stderr:
            return "Database Error: The specified database does not exist."
        if "can't connect" in stderr or "unknown mysql server host" in stderr:
            return "Connection Error: Could not connect to the database server. Check the host and port."

    return "Unknown Error: The backup failed for an unidentified reason. Check the full log for details."
