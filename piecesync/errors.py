# piecesync/errors.py
from typing import Optional


class PieceSyncError(Exception):
    """Base class of every error raised by the import engine."""


class ParseError(PieceSyncError, ValueError):
    """Structural problem in a detailing file: the whole batch is rejected."""

    def __init__(self, message: str, *, file_name: Optional[str] = None):
        self.file_name = file_name
        if file_name:
            message = f"{file_name}: {message}"
        super().__init__(message)


class CorruptBatchError(ParseError):
    """An instance identifier would belong to two different piece groups."""

    def __init__(self, message: str, *, piece_ids: Optional[list] = None):
        self.piece_ids = sorted(piece_ids or [])
        super().__init__(message)


class ReconciliationConflict(PieceSyncError):
    """Project code already exists under a different client."""

    def __init__(self, *, project_code: str, existing_client_name: str, header_client_name: str):
        self.project_code = project_code
        self.existing_client_name = existing_client_name
        self.header_client_name = header_client_name
        super().__init__(
            f"Project {project_code} already exists for client "
            f"'{existing_client_name}', but the file names client '{header_client_name}'"
        )


class StoreWriteError(PieceSyncError):
    """A store call failed; `operation` names the call."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.operation = operation
        self.cause = cause
        super().__init__(message or f"Store operation '{operation}' failed: {cause}")


class PartialWriteError(StoreWriteError):
    """Pieces were saved, but the project total_volume update failed."""

    def __init__(
        self,
        *,
        project_id: str,
        total_volume: Optional[float],
        cause: Optional[BaseException] = None,
        result=None,
    ):
        self.project_id = project_id
        self.total_volume = total_volume
        self.result = result
        super().__init__(
            "update_project_volume",
            cause,
            message=f"Pieces saved, but total volume update failed for project {project_id}: {cause}",
        )


class SessionVersionMismatch(PieceSyncError, ValueError):
    def __init__(self, *, expected: str, found: Optional[str]):
        self.expected = expected
        self.found = found
        super().__init__(
            f"incompatible session file (expected version {expected!r}, found {found!r})"
        )


class NotFoundError(PieceSyncError, LookupError):
    pass
