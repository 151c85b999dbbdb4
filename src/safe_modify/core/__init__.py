"""Core components: file access, backups, git, validation and orchestration."""

from .backup_store import BackupStore
from .file_store import FileStore
from .orchestrator import ModificationOrchestrator
from .validator import DefaultSourceValidator, SourceValidator
from .vcs_gateway import VersionControlGateway

__all__ = [
    "BackupStore",
    "FileStore",
    "ModificationOrchestrator",
    "DefaultSourceValidator",
    "SourceValidator",
    "VersionControlGateway",
]
