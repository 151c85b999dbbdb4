"""Request and result models for file modifications."""

from typing import Optional

from pydantic import BaseModel, Field

from safe_modify.errors import ErrorKind
from safe_modify.models.validation import ValidationResult


class ModificationRequest(BaseModel):
    """A literal replacement of ``original_code`` by ``modified_code``."""

    file_path: str
    original_code: str
    modified_code: str
    commit_message: Optional[str] = None
    create_branch: bool = False
    branch_name: Optional[str] = None
    suggestion_id: Optional[str] = None


class ModificationError(BaseModel):
    """Discriminated failure attached to a result."""

    kind: ErrorKind
    message: str

    model_config = {"frozen": True}


class ModificationResult(BaseModel):
    """Outcome of an apply or batch apply. Immutable once returned."""

    success: bool
    file_path: str
    backup_id: Optional[str] = None
    backup_path: Optional[str] = None
    commit_hash: Optional[str] = None
    commit_error: Optional[str] = None  # Soft warning, write is kept
    error: Optional[ModificationError] = None
    validation: ValidationResult = Field(default_factory=ValidationResult)
    history_id: Optional[str] = None
    suggestion_id: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.kind if self.error else None

    @classmethod
    def failure(
        cls,
        file_path: str,
        kind: ErrorKind,
        message: str,
        validation: Optional[ValidationResult] = None,
        **extra,
    ) -> "ModificationResult":
        """Build a failed result, defaulting to an invalid validation."""
        return cls(
            success=False,
            file_path=file_path,
            error=ModificationError(kind=kind, message=message),
            validation=validation if validation is not None else ValidationResult(valid=False),
            **extra,
        )


class OperationOutcome(BaseModel):
    """The ``{success, error?}`` shape used by revert and restore."""

    success: bool
    error: Optional[str] = None
    kind: Optional[ErrorKind] = None

    @classmethod
    def ok(cls) -> "OperationOutcome":
        return cls(success=True)

    @classmethod
    def fail(cls, kind: ErrorKind, message: str) -> "OperationOutcome":
        return cls(success=False, kind=kind, error=message)


class PreviewResult(BaseModel):
    """Hypothetical content of a modification."""

    success: bool
    preview: Optional[str] = None
    error: Optional[str] = None
