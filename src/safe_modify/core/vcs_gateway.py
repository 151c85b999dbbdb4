"""Git access for safe-modify, built on GitPython."""

import re
from pathlib import Path
from typing import List, Optional, Sequence, Union

import git
from git import Repo

from safe_modify.config import GitSettings
from safe_modify.logging_config import logger
from safe_modify.models.git import (
    CommitInfo,
    DiffHunk,
    FileDiff,
    GitOperationResult,
    RepositoryStatus,
)

# Everything GitPython (or gitdb underneath it) raises for a failed operation.
GIT_ERRORS = (git.exc.GitError, git.exc.ODBError, ValueError, OSError)

_HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@")


class VersionControlGateway:
    """Wraps the project's git repository.

    No public method raises: failures come back as
    ``GitOperationResult(success=False, error=...)`` or an empty projection.
    """

    def __init__(self, project_root: Union[str, Path], settings: Optional[GitSettings] = None):
        self.project_root = Path(project_root).resolve()
        self.settings = settings or GitSettings()
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        """Get the git repository, opening it on first use."""
        if self._repo is None:
            self._repo = Repo(self.project_root)
        return self._repo

    def is_git_repo(self) -> bool:
        try:
            self.repo.git.rev_parse("--git-dir")
            return True
        except GIT_ERRORS:
            return False

    def get_status(self) -> RepositoryStatus:
        """Current branch, change lists and ahead/behind counts."""
        try:
            output = self.repo.git.status(
                "--porcelain=v2", "--branch", "-z", "--untracked-files=all"
            )
        except GIT_ERRORS as e:
            logger.debug(f"Status unavailable for {self.project_root}: {e}")
            return RepositoryStatus.not_a_repository()

        return self._parse_porcelain_v2(output)

    def _parse_porcelain_v2(self, output: str) -> RepositoryStatus:
        branch = ""
        ahead = behind = 0
        staged: List[str] = []
        unstaged: List[str] = []
        untracked: List[str] = []
        conflicted: List[str] = []

        records = output.split("\x00")
        index = 0
        while index < len(records):
            record = records[index]
            index += 1
            if not record:
                continue

            if record.startswith("# branch.head "):
                branch = record[len("# branch.head "):]
            elif record.startswith("# branch.ab "):
                # Format: # branch.ab +<ahead> -<behind>
                parts = record.split()
                ahead = int(parts[2].lstrip("+"))
                behind = int(parts[3].lstrip("-"))
            elif record.startswith("1 "):
                # Format: 1 <XY> <sub> <mH> <mI> <mW> <hH> <hI> <path>
                fields = record.split(" ", 8)
                self._classify(fields[1], fields[8], staged, unstaged)
            elif record.startswith("2 "):
                # Format: 2 <XY> <sub> <mH> <mI> <mW> <hH> <hI> <X><score> <path>
                # followed by a separate record holding the original path
                fields = record.split(" ", 9)
                self._classify(fields[1], fields[9], staged, unstaged)
                index += 1
            elif record.startswith("u "):
                # Format: u <XY> <sub> <m1> <m2> <m3> <mW> <h1> <h2> <h3> <path>
                conflicted.append(record.split(" ", 10)[10])
            elif record.startswith("? "):
                untracked.append(record[2:])

        return RepositoryStatus(
            is_repo=True,
            branch=branch or "unknown",
            is_clean=not (staged or unstaged or untracked or conflicted),
            staged=staged,
            unstaged=unstaged,
            untracked=untracked,
            conflicted=conflicted,
            ahead=ahead,
            behind=behind,
        )

    @staticmethod
    def _classify(xy: str, path: str, staged: List[str], unstaged: List[str]) -> None:
        if xy[0] != ".":
            staged.append(path)
        if xy[1] != ".":
            unstaged.append(path)

    def is_working_dir_clean(self) -> bool:
        return self.get_status().is_clean

    def get_current_branch(self) -> str:
        status = self.get_status()
        return status.branch if status.is_repo else "unknown"

    def has_uncommitted_changes(self, file_path: str) -> bool:
        """True if the file is staged, modified or untracked."""
        status = self.get_status()
        path = self._repo_path(file_path)
        return (
            path in status.staged
            or path in status.unstaged
            or path in status.untracked
            or path in status.conflicted
        )

    def has_merge_conflicts(self) -> bool:
        return bool(self.get_status().conflicted)

    def create_branch(self, branch_name: str, checkout: bool = True) -> GitOperationResult:
        """Create ``<branch_prefix><branch_name>``, optionally checking it out."""
        full_name = f"{self.settings.branch_prefix}{branch_name}"
        try:
            head = self.repo.create_head(full_name)
            if checkout:
                head.checkout()
        except GIT_ERRORS as e:
            logger.warning(f"Failed to create branch {full_name}: {e}")
            return GitOperationResult(success=False, error=f"Failed to create branch: {e}")

        logger.info(f"Created branch {full_name}{' (checked out)' if checkout else ''}")
        return GitOperationResult(success=True)

    def checkout_branch(self, branch_name: str) -> GitOperationResult:
        try:
            self.repo.git.checkout(branch_name)
        except GIT_ERRORS as e:
            return GitOperationResult(success=False, error=f"Failed to checkout branch: {e}")
        return GitOperationResult(success=True)

    def stage_files(self, files: Sequence[str]) -> GitOperationResult:
        try:
            self.repo.git.add("--", *[self._repo_path(f) for f in files])
        except GIT_ERRORS as e:
            return GitOperationResult(success=False, error=f"Failed to stage files: {e}")
        return GitOperationResult(success=True)

    def commit(self, message: str, files: Optional[Sequence[str]] = None) -> GitOperationResult:
        """Commit ``files`` (or whatever is already staged) with the configured prefix."""
        full_message = f"{self.settings.commit_message_prefix} {message}".strip()
        try:
            if files:
                self.repo.git.add("--", *[self._repo_path(f) for f in files])
            self.repo.git.commit("-m", full_message)
            commit_hash = self.repo.head.commit.hexsha
        except GIT_ERRORS as e:
            logger.warning(f"Commit failed: {e}")
            return GitOperationResult(success=False, error=f"Failed to commit: {e}")

        logger.info(f"Committed {commit_hash[:8]}: {full_message}")
        return GitOperationResult(success=True, hash=commit_hash)

    def revert_commit(self, commit_hash: str) -> GitOperationResult:
        """Apply the inverse of a commit to the working tree without committing."""
        try:
            self.repo.git.revert("--no-commit", commit_hash)
        except GIT_ERRORS as e:
            logger.warning(f"Revert of {commit_hash[:8]} failed: {e}")
            return GitOperationResult(success=False, error=f"Failed to revert commit: {e}")

        logger.info(f"Reverted {commit_hash[:8]} into the working tree")
        return GitOperationResult(success=True)

    def reset_file(self, file_path: str) -> GitOperationResult:
        """Discard local edits to one file."""
        try:
            self.repo.git.checkout("HEAD", "--", self._repo_path(file_path))
        except GIT_ERRORS as e:
            return GitOperationResult(success=False, error=f"Failed to reset file: {e}")
        return GitOperationResult(success=True)

    def stash(self, message: Optional[str] = None) -> GitOperationResult:
        try:
            if message:
                self.repo.git.stash("push", "-m", message)
            else:
                self.repo.git.stash("push")
        except GIT_ERRORS as e:
            return GitOperationResult(success=False, error=f"Failed to stash changes: {e}")
        return GitOperationResult(success=True)

    def stash_pop(self) -> GitOperationResult:
        try:
            self.repo.git.stash("pop")
        except GIT_ERRORS as e:
            return GitOperationResult(success=False, error=f"Failed to pop stash: {e}")
        return GitOperationResult(success=True)

    def list_stashes(self) -> List[str]:
        try:
            output = self.repo.git.stash("list")
        except GIT_ERRORS:
            return []
        return [line for line in output.splitlines() if line]

    def get_history(self, max_count: int = 50, file: Optional[str] = None) -> List[CommitInfo]:
        """Commits newest first, optionally limited to those touching ``file``."""
        kwargs = {"max_count": max_count}
        if file:
            kwargs["paths"] = self._repo_path(file)

        try:
            return [
                CommitInfo(
                    hash=commit.hexsha,
                    message=commit.message.strip(),
                    author=commit.author.name or "",
                    date=commit.committed_datetime,
                    files=sorted(commit.stats.files.keys()),
                )
                for commit in self.repo.iter_commits(**kwargs)
            ]
        except GIT_ERRORS as e:
            logger.debug(f"History unavailable: {e}")
            return []

    def get_file_diff(self, file_path: str) -> Optional[FileDiff]:
        """Unstaged diff of one file, or ``None`` if it has no changes."""
        path = self._repo_path(file_path)
        try:
            diff_text = self.repo.git.diff("--", path)
        except GIT_ERRORS:
            return None
        if not diff_text:
            return None
        return parse_unified_diff(path, diff_text)

    def get_staged_diff(self, file_path: Optional[str] = None) -> str:
        args = ["--cached"]
        if file_path:
            args.extend(["--", self._repo_path(file_path)])
        try:
            return self.repo.git.diff(*args)
        except GIT_ERRORS:
            return ""

    def get_file_at_commit(self, file_path: str, commit_hash: str) -> GitOperationResult:
        try:
            content = self.repo.git.show(f"{commit_hash}:{self._repo_path(file_path)}")
        except GIT_ERRORS as e:
            return GitOperationResult(success=False, error=f"Failed to get file at commit: {e}")
        return GitOperationResult(success=True, content=content)

    def _repo_path(self, file_path: str) -> str:
        """Project-relative POSIX path, as git status reports it."""
        path = Path(file_path)
        if path.is_absolute():
            try:
                path = path.resolve().relative_to(self.project_root)
            except ValueError:
                return path.as_posix()
        return path.as_posix()


def parse_unified_diff(file_path: str, diff_text: str) -> FileDiff:
    """Count additions/deletions and split a unified diff into hunks."""
    additions = deletions = 0
    hunks: List[DiffHunk] = []
    current: Optional[dict] = None
    body: List[str] = []

    def flush():
        if current is not None:
            hunks.append(DiffHunk(content="\n".join(body), **current))

    for line in diff_text.split("\n"):
        header = _HUNK_HEADER.match(line)
        if header:
            flush()
            old_start, old_lines, new_start, new_lines = header.groups()
            current = {
                "old_start": int(old_start),
                "old_lines": int(old_lines) if old_lines is not None else 1,
                "new_start": int(new_start),
                "new_lines": int(new_lines) if new_lines is not None else 1,
            }
            body = [line]
            continue

        if current is None:
            continue
        body.append(line)
        if line.startswith("+") and not line.startswith("+++"):
            additions += 1
        elif line.startswith("-") and not line.startswith("---"):
            deletions += 1

    flush()
    return FileDiff(file_path=file_path, additions=additions, deletions=deletions, hunks=hunks)
