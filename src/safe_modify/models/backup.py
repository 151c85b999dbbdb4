"""Backup models for the snapshot ledger."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class BackupEntry(BaseModel):
    """Snapshot of a file taken immediately before a modification."""

    id: str
    file_path: str
    backup_path: str
    timestamp: datetime
    original_content: Optional[str] = None
    reason: str = ""

    model_config = {"frozen": True}

    @property
    def backup_file_name(self) -> str:
        return self.backup_path.replace("\\", "/").rsplit("/", 1)[-1]


class BackupManifest(BaseModel):
    """Durable, ordered index of all backup entries (oldest first)."""

    version: str = "1.0"
    entries: List[BackupEntry] = []


class IntegrityReport(BaseModel):
    """Result of checking the manifest against the backup directory."""

    valid: bool
    issues: List[str] = []
    missing_entries: List[str] = []
    orphaned_files: List[str] = []


class BackupStatistics(BaseModel):
    total_backups: int = 0
    total_size: int = 0
    oldest_backup: Optional[datetime] = None
    newest_backup: Optional[datetime] = None
    files_covered: int = 0
