"""Modification history model."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from safe_modify.errors import AlreadyRevertedError


class HistoryStatus(str, Enum):
    """Status of a recorded modification."""

    APPLIED = "applied"
    REVERTED = "reverted"
    REJECTED = "rejected"


class HistoryEntry(BaseModel):
    """Append-only record of one applied or attempted modification."""

    id: str
    timestamp: datetime
    file_path: str
    category: str = ""
    description: str = ""
    status: HistoryStatus
    backup_id: Optional[str] = None
    backup_path: Optional[str] = None
    commit_hash: Optional[str] = None
    suggestion_id: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_reverted(self) -> bool:
        return self.status == HistoryStatus.REVERTED

    def mark_reverted(self) -> None:
        """Transition to ``reverted``; the only mutation an entry allows."""
        if self.is_reverted:
            raise AlreadyRevertedError(f"Modification {self.id} already reverted")
        self.status = HistoryStatus.REVERTED
