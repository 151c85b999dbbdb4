"""Version-control projection models."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class RepositoryStatus(BaseModel):
    """Snapshot of the working tree, recomputed on every call."""

    is_repo: bool
    branch: str = ""
    is_clean: bool = True
    staged: List[str] = []
    unstaged: List[str] = []
    untracked: List[str] = []
    conflicted: List[str] = []
    ahead: int = 0
    behind: int = 0

    @classmethod
    def not_a_repository(cls) -> "RepositoryStatus":
        return cls(is_repo=False)


class GitOperationResult(BaseModel):
    """``{success, ...}`` shape returned by every gateway mutation."""

    success: bool
    error: Optional[str] = None
    hash: Optional[str] = None
    content: Optional[str] = None


class CommitInfo(BaseModel):
    """A commit in the project history."""

    hash: str
    message: str
    author: str
    date: datetime
    files: List[str] = []


class DiffHunk(BaseModel):
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    content: str


class FileDiff(BaseModel):
    """Working-tree diff of a single file."""

    file_path: str
    additions: int = 0
    deletions: int = 0
    hunks: List[DiffHunk] = []
