"""Sequencing of validated, backed-up and optionally committed file modifications."""

import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from safe_modify.config import SafeModifyConfig, load_config
from safe_modify.core.backup_store import BackupStore
from safe_modify.core.file_store import FileStore
from safe_modify.core.validator import DefaultSourceValidator, SourceValidator
from safe_modify.core.vcs_gateway import VersionControlGateway
from safe_modify.errors import ErrorKind, SafeModifyError
from safe_modify.logging_config import logger
from safe_modify.models.backup import BackupEntry
from safe_modify.models.history import HistoryEntry, HistoryStatus
from safe_modify.models.modification import (
    ModificationRequest,
    ModificationResult,
    OperationOutcome,
    PreviewResult,
)
from safe_modify.models.suggestion import CodeSuggestion
from safe_modify.models.validation import ValidationResult

DEFAULT_COMMIT_MESSAGE = "Apply AI-suggested optimization"
CONFLICT_MESSAGE = "Original code not found - may conflict with other changes"


class ModificationOrchestrator:
    """Applies literal replacements to one project's files.

    Each apply runs through a fixed sequence of gates (precondition, read,
    match, compute, validate, snapshot, branch, write, commit, record); the
    first gate that fails short-circuits to a failed result. Entry points
    never raise. Write failures restore the snapshot; commit failures are
    reported in ``commit_error`` and the write is kept.

    One instance serves one project. Calls on the same instance are
    serialized; the backup manifest is additionally guarded by a file lock.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        config: Optional[SafeModifyConfig] = None,
        file_store: Optional[FileStore] = None,
        backup_store: Optional[BackupStore] = None,
        vcs: Optional[VersionControlGateway] = None,
        validator: Optional[SourceValidator] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.config = config or load_config(self.project_root)
        self.file_store = file_store or FileStore(self.project_root)
        self.backup_store = backup_store or BackupStore(
            self.project_root, self.file_store, self.config.backup
        )
        self.vcs = vcs or VersionControlGateway(self.project_root, self.config.git)
        self.validator = validator or DefaultSourceValidator()
        self._history: List[HistoryEntry] = []
        self._lock = threading.RLock()

    @classmethod
    def for_project(
        cls, project_root: Union[str, Path], overrides: Optional[Dict] = None
    ) -> "ModificationOrchestrator":
        """Build an orchestrator with the project's own configuration file."""
        return cls(project_root, config=load_config(Path(project_root), overrides))

    # Single modification

    def apply_modification(self, request: ModificationRequest) -> ModificationResult:
        """Apply one literal replacement and record it in the history."""
        with self._lock:
            result = self._apply(request)
            return self._record(
                result,
                category="",
                description=request.commit_message or "",
            )

    def apply_suggestion(
        self,
        file_path: str,
        suggestion: CodeSuggestion,
        create_branch: bool = False,
        branch_name: Optional[str] = None,
        commit_message: Optional[str] = None,
    ) -> ModificationResult:
        """Apply a suggestion produced by the analysis engine."""
        request = ModificationRequest(
            file_path=file_path,
            original_code=suggestion.original_code,
            modified_code=suggestion.modified_code,
            commit_message=commit_message or _suggestion_commit_message(suggestion),
            create_branch=create_branch,
            branch_name=branch_name,
            suggestion_id=suggestion.id,
        )
        with self._lock:
            result = self._apply(request)
            return self._record(
                result,
                category=suggestion.category.value,
                description=suggestion.description,
            )

    def _apply(self, request: ModificationRequest) -> ModificationResult:
        extra = {"suggestion_id": request.suggestion_id}

        try:
            file_path = self.file_store.relative_path(request.file_path)
        except SafeModifyError as e:
            return ModificationResult.failure(request.file_path, e.kind, e.message, **extra)

        # Precondition: runs before anything is read
        if self.config.git.require_clean_working_dir and self.vcs.has_uncommitted_changes(
            file_path
        ):
            logger.warning(f"Refusing to modify {file_path}: uncommitted changes")
            return ModificationResult.failure(
                file_path,
                ErrorKind.PRECONDITION_FAILED,
                "File has uncommitted changes. Please commit or stash them first.",
                **extra,
            )

        try:
            current_content = self.file_store.read(file_path)
        except SafeModifyError as e:
            return ModificationResult.failure(file_path, e.kind, e.message, **extra)

        match_error = self._match_error(current_content, request.original_code)
        if match_error:
            logger.warning(f"{file_path}: {match_error}")
            return ModificationResult.failure(
                file_path, ErrorKind.NOT_FOUND, match_error, **extra
            )

        new_content = current_content.replace(request.original_code, request.modified_code, 1)

        validation = self.validator.check_syntax(new_content, file_path)
        if not validation.valid:
            logger.warning(f"{file_path}: modified code has syntax errors")
            return ModificationResult.failure(
                file_path,
                ErrorKind.VALIDATION_FAILED,
                "Modified code has syntax errors",
                validation,
                **extra,
            )

        safety = self.validator.check_safety(
            request.original_code, request.modified_code, file_path
        )
        validation = validation.model_copy(
            update={"safety_issues": safety.issues, "safety_warnings": safety.warnings}
        )
        if not safety.safe:
            logger.warning(f"{file_path}: unsafe modification: {safety.issues}")
            return ModificationResult.failure(
                file_path,
                ErrorKind.SAFETY_VIOLATION,
                f"Unsafe modification: {', '.join(safety.issues)}",
                validation,
                **extra,
            )

        reason = f"Before applying: {request.commit_message or 'AI modification'}"
        try:
            backup = self.backup_store.create_backup(file_path, reason, content=current_content)
        except SafeModifyError as e:
            return ModificationResult.failure(
                file_path,
                ErrorKind.IO_ERROR,
                f"Failed to create backup: {e.message}",
                validation,
                **extra,
            )
        extra.update(_backup_refs(backup))

        if request.create_branch:
            branch_name = request.branch_name or _default_branch_name(file_path)
            branch = self.vcs.create_branch(branch_name, checkout=True)
            if not branch.success:
                # The snapshot stays in the ledger, unused.
                return ModificationResult.failure(
                    file_path,
                    ErrorKind.VCS_ERROR,
                    branch.error or "Failed to create branch",
                    validation,
                    **extra,
                )

        try:
            self.file_store.write(file_path, new_content)
        except SafeModifyError as e:
            self._restore_after_failed_write(backup)
            return ModificationResult.failure(
                file_path, ErrorKind.IO_ERROR, e.message, validation, **extra
            )

        commit_hash, commit_error = self._auto_commit(
            request.commit_message or DEFAULT_COMMIT_MESSAGE, file_path
        )

        logger.info(f"Applied modification to {file_path}")
        return ModificationResult(
            success=True,
            file_path=file_path,
            commit_hash=commit_hash,
            commit_error=commit_error,
            validation=validation,
            **extra,
        )

    # Batch modification

    def apply_multiple_suggestions(
        self,
        file_path: str,
        suggestions: Sequence[CodeSuggestion],
        create_branch: bool = False,
        branch_name: Optional[str] = None,
        commit_message: Optional[str] = None,
    ) -> List[ModificationResult]:
        """Apply several suggestions to one file with a single write.

        Results come back in the order of ``suggestions``.
        """
        with self._lock:
            results = self._apply_batch(
                file_path, list(suggestions), create_branch, branch_name, commit_message
            )
            return [
                self._record(result, category=s.category.value, description=s.description)
                for s, result in zip(suggestions, results)
            ]

    def _apply_batch(
        self,
        requested_path: str,
        suggestions: List[CodeSuggestion],
        create_branch: bool,
        branch_name: Optional[str],
        commit_message: Optional[str],
    ) -> List[ModificationResult]:
        if not suggestions:
            return []

        def fail_all(path, kind, message, validation=None, **extra):
            return [
                ModificationResult.failure(
                    path, kind, message, validation, suggestion_id=s.id, **extra
                )
                for s in suggestions
            ]

        try:
            file_path = self.file_store.relative_path(requested_path)
        except SafeModifyError as e:
            return fail_all(requested_path, e.kind, e.message)

        if self.config.git.require_clean_working_dir and self.vcs.has_uncommitted_changes(
            file_path
        ):
            return fail_all(
                file_path,
                ErrorKind.PRECONDITION_FAILED,
                "File has uncommitted changes. Please commit or stash them first.",
            )

        try:
            initial_content = self.file_store.read(file_path)
        except SafeModifyError as e:
            return fail_all(file_path, e.kind, e.message)

        # Bottom-up so earlier edits do not move text later ones depend on.
        order = sorted(
            range(len(suggestions)), key=lambda i: suggestions[i].line_start, reverse=True
        )
        content = initial_content
        applied: List[int] = []
        conflicts = set()
        for index in order:
            suggestion = suggestions[index]
            logger.debug(
                f"Batch {file_path}: suggestion {suggestion.id} (line {suggestion.line_start})"
            )
            if suggestion.original_code not in content:
                logger.warning(f"Batch {file_path}: suggestion {suggestion.id} conflicts")
                conflicts.add(index)
                continue
            content = content.replace(suggestion.original_code, suggestion.modified_code, 1)
            applied.append(index)

        def conflict_result(index):
            return ModificationResult.failure(
                file_path,
                ErrorKind.CONFLICT,
                CONFLICT_MESSAGE,
                ValidationResult(valid=True),
                suggestion_id=suggestions[index].id,
            )

        def outcome(kind, message, validation, **extra):
            return [
                conflict_result(i)
                if i in conflicts
                else ModificationResult.failure(
                    file_path,
                    kind,
                    message,
                    validation,
                    suggestion_id=suggestions[i].id,
                    **extra,
                )
                for i in range(len(suggestions))
            ]

        if not applied:
            return [conflict_result(i) for i in range(len(suggestions))]

        validation = self.validator.check_syntax(content, file_path)
        if not validation.valid:
            logger.warning(f"Batch {file_path}: combined changes are invalid, nothing written")
            return outcome(
                ErrorKind.VALIDATION_FAILED, "Combined changes result in invalid code", validation
            )

        safety = self.validator.check_safety(initial_content, content, file_path)
        validation = validation.model_copy(
            update={"safety_issues": safety.issues, "safety_warnings": safety.warnings}
        )
        if not safety.safe:
            return outcome(
                ErrorKind.SAFETY_VIOLATION,
                f"Unsafe modification: {', '.join(safety.issues)}",
                validation,
            )

        try:
            backup = self.backup_store.create_backup(
                file_path,
                f"Before applying {len(applied)} suggestions",
                content=initial_content,
            )
        except SafeModifyError as e:
            return outcome(ErrorKind.IO_ERROR, f"Failed to create backup: {e.message}", validation)
        refs = _backup_refs(backup)

        if create_branch:
            branch = self.vcs.create_branch(
                branch_name or _default_branch_name(file_path), checkout=True
            )
            if not branch.success:
                return outcome(
                    ErrorKind.VCS_ERROR,
                    branch.error or "Failed to create branch",
                    validation,
                    **refs,
                )

        try:
            self.file_store.write(file_path, content)
        except SafeModifyError as e:
            self._restore_after_failed_write(backup)
            return outcome(ErrorKind.IO_ERROR, e.message, validation, **refs)

        commit_hash, commit_error = self._auto_commit(
            commit_message or f"Apply {len(applied)} optimizations", file_path
        )

        logger.info(f"Applied {len(applied)} of {len(suggestions)} suggestions to {file_path}")
        return [
            conflict_result(i)
            if i in conflicts
            else ModificationResult(
                success=True,
                file_path=file_path,
                commit_hash=commit_hash,
                commit_error=commit_error,
                validation=validation,
                suggestion_id=suggestions[i].id,
                **refs,
            )
            for i in range(len(suggestions))
        ]

    # Revert and preview

    def revert_modification(self, modification_id: str) -> OperationOutcome:
        """Undo a recorded modification from its backup, else its commit."""
        with self._lock:
            entry = next((h for h in self._history if h.id == modification_id), None)
            if entry is None:
                return OperationOutcome.fail(
                    ErrorKind.NOT_FOUND, "Modification not found in history"
                )
            if entry.is_reverted:
                return OperationOutcome.fail(
                    ErrorKind.ALREADY_REVERTED, "Modification already reverted"
                )
            if entry.status == HistoryStatus.REJECTED:
                return OperationOutcome.fail(
                    ErrorKind.NO_RECOVERY_PATH, "Modification was never applied"
                )

            if entry.backup_id:
                latest = self.backup_store.get_latest_backup(entry.file_path)
                if latest is not None:
                    restored = self.backup_store.restore_backup(latest.id)
                    if restored.success:
                        entry.mark_reverted()
                        logger.info(f"Reverted {entry.id} from backup {latest.id}")
                        return OperationOutcome.ok()
                    logger.warning(f"Backup restore for {entry.id} failed: {restored.error}")

            if entry.commit_hash:
                reverted = self.vcs.revert_commit(entry.commit_hash)
                if reverted.success:
                    entry.mark_reverted()
                    logger.info(f"Reverted {entry.id} via commit {entry.commit_hash[:8]}")
                    return OperationOutcome.ok()
                return OperationOutcome.fail(
                    ErrorKind.VCS_ERROR, reverted.error or "Failed to revert commit"
                )

            return OperationOutcome.fail(
                ErrorKind.NO_RECOVERY_PATH, "No backup or commit available for reversion"
            )

    @staticmethod
    def preview_modification(
        current_content: str, original_code: str, modified_code: str
    ) -> PreviewResult:
        """What ``current_content`` would become; no I/O."""
        if original_code not in current_content:
            return PreviewResult(
                success=False, error="Original code not found in current content"
            )
        return PreviewResult(
            success=True, preview=current_content.replace(original_code, modified_code, 1)
        )

    # Queries

    def get_history(self, file_path: Optional[str] = None) -> List[HistoryEntry]:
        """History entries, newest first. Returned entries are copies."""
        entries = list(reversed(self._history))
        if file_path is not None:
            try:
                relative = self.file_store.relative_path(file_path)
            except SafeModifyError:
                return []
            entries = [e for e in entries if e.file_path == relative]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return [e.model_copy() for e in entries]

    def get_backups(self, file_path: Optional[str] = None) -> List[BackupEntry]:
        if file_path is None:
            return self.backup_store.get_all_backups()
        return self.backup_store.get_backups_for_file(file_path)

    def restore_backup(self, backup_id: str) -> OperationOutcome:
        with self._lock:
            return self.backup_store.restore_backup(backup_id)

    # Internals

    def _match_error(self, content: str, original_code: str) -> Optional[str]:
        occurrences = content.count(original_code)
        if occurrences == 0:
            return "Original code not found in file. The file may have been modified."
        if occurrences > 1:
            if self.config.modification.reject_ambiguous_matches:
                return f"Original code is ambiguous: found {occurrences} occurrences"
            logger.warning(
                f"Original code occurs {occurrences} times, replacing the first occurrence"
            )
        return None

    def _auto_commit(self, message: str, file_path: str):
        if not self.config.git.auto_commit:
            return None, None
        commit = self.vcs.commit(message, [file_path])
        if commit.success:
            return commit.hash, None
        logger.warning(f"Failed to create commit for {file_path}: {commit.error}")
        return None, commit.error

    def _restore_after_failed_write(self, backup: Optional[BackupEntry]) -> None:
        if backup is None:
            return
        restored = self.backup_store.restore_backup(backup.id)
        if not restored.success:
            logger.error(f"Could not restore {backup.file_path} from {backup.id}: {restored.error}")

    def _record(
        self, result: ModificationResult, category: str, description: str
    ) -> ModificationResult:
        entry = HistoryEntry(
            id=str(uuid.uuid4()),
            timestamp=datetime.now(),
            file_path=result.file_path,
            category=category,
            description=description,
            status=HistoryStatus.APPLIED if result.success else HistoryStatus.REJECTED,
            backup_id=result.backup_id,
            backup_path=result.backup_path,
            commit_hash=result.commit_hash,
            suggestion_id=result.suggestion_id,
            error=result.error.message if result.error else None,
        )
        self._history.append(entry)
        return result.model_copy(update={"history_id": entry.id})


def _backup_refs(backup: Optional[BackupEntry]) -> Dict[str, str]:
    if backup is None:
        return {}
    return {"backup_id": backup.id, "backup_path": backup.backup_path}


def _default_branch_name(file_path: str) -> str:
    return f"{Path(file_path).stem}-{datetime.now().strftime('%Y-%m-%d-%H-%M-%S')}"


def _suggestion_commit_message(suggestion: CodeSuggestion) -> str:
    if suggestion.title:
        return f"{suggestion.category.value}: {suggestion.title}"
    return DEFAULT_COMMIT_MESSAGE
