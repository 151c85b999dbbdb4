"""Data models for safe-modify."""

from .backup import BackupEntry, BackupManifest, BackupStatistics, IntegrityReport
from .git import CommitInfo, DiffHunk, FileDiff, GitOperationResult, RepositoryStatus
from .history import HistoryEntry, HistoryStatus
from .modification import (
    ModificationError,
    ModificationRequest,
    ModificationResult,
    OperationOutcome,
    PreviewResult,
)
from .suggestion import CodeSuggestion, SuggestionCategory, SuggestionPriority
from .validation import SafetyReport, SyntaxIssue, ValidationResult

__all__ = [
    "BackupEntry",
    "BackupManifest",
    "BackupStatistics",
    "IntegrityReport",
    "CommitInfo",
    "DiffHunk",
    "FileDiff",
    "GitOperationResult",
    "RepositoryStatus",
    "HistoryEntry",
    "HistoryStatus",
    "ModificationError",
    "ModificationRequest",
    "ModificationResult",
    "OperationOutcome",
    "PreviewResult",
    "CodeSuggestion",
    "SuggestionCategory",
    "SuggestionPriority",
    "SafetyReport",
    "SyntaxIssue",
    "ValidationResult",
]
