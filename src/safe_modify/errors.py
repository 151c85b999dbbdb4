"""Error taxonomy for safe-modify."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Kind of failure reported by a modification or storage operation."""

    OUTSIDE_PROJECT = "outside_project"
    NOT_FOUND = "not_found"
    PRECONDITION_FAILED = "precondition_failed"
    VALIDATION_FAILED = "validation_failed"
    SAFETY_VIOLATION = "safety_violation"
    IO_ERROR = "io_error"
    VCS_ERROR = "vcs_error"
    CONFLICT = "conflict"
    ALREADY_REVERTED = "already_reverted"
    NO_RECOVERY_PATH = "no_recovery_path"


class SafeModifyError(Exception):
    """Base exception for storage-layer failures.

    Raised inside the package only; orchestrator entry points convert it
    into a result carrying the same ``kind``.
    """

    kind = ErrorKind.IO_ERROR

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind


class OutsideProjectError(SafeModifyError):
    """Raised when a path resolves outside the project root."""

    kind = ErrorKind.OUTSIDE_PROJECT


class FileNotInProjectError(SafeModifyError):
    """Raised when a file to read does not exist."""

    kind = ErrorKind.NOT_FOUND


class FileWriteError(SafeModifyError):
    """Raised when writing a project file fails."""

    kind = ErrorKind.IO_ERROR


class BackupError(SafeModifyError):
    """Raised when a snapshot cannot be written or recorded."""

    kind = ErrorKind.IO_ERROR


class AlreadyRevertedError(SafeModifyError):
    """Raised when a history entry is marked reverted twice."""

    kind = ErrorKind.ALREADY_REVERTED
