"""Snapshot ledger for files modified by safe-modify."""

import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterator, List, Optional, Union

from filelock import FileLock, Timeout
from pydantic import ValidationError

from safe_modify.config import BackupSettings
from safe_modify.core.file_store import FileStore, encode_text
from safe_modify.errors import BackupError, ErrorKind, OutsideProjectError, SafeModifyError
from safe_modify.logging_config import logger
from safe_modify.models.backup import (
    BackupEntry,
    BackupManifest,
    BackupStatistics,
    IntegrityReport,
)
from safe_modify.models.modification import OperationOutcome

MANIFEST_NAME = "manifest.json"
LOCK_NAME = ".manifest.lock"


class BackupStore:
    """Manages backups of project files and their persisted manifest.

    Every read-modify-write of ``manifest.json`` happens under an advisory
    file lock and starts from the manifest on disk, so several stores (or
    processes) working on the same project never interleave updates.
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        file_store: FileStore,
        settings: Optional[BackupSettings] = None,
    ):
        self.project_root = Path(project_root).resolve()
        self.file_store = file_store
        self.settings = settings or BackupSettings()
        self.backup_dir = self.project_root / self.settings.backup_dir
        self.manifest_path = self.backup_dir / MANIFEST_NAME
        # The directory is created by the first write, not here.
        self._lock = FileLock(str(self.backup_dir / LOCK_NAME), timeout=30)

    @property
    def enabled(self) -> bool:
        return self.settings.enabled

    def create_backup(
        self, file_path: str, reason: str, content: Optional[str] = None
    ) -> Optional[BackupEntry]:
        """Snapshot a file before it is modified.

        ``content`` lets the caller snapshot exactly what it already read;
        otherwise the file is read through the file store. Returns ``None``
        when backups are disabled.
        """
        if not self.settings.enabled:
            logger.debug(f"Backups disabled, skipping snapshot of {file_path}")
            return None

        relative = self.file_store.relative_path(file_path)
        if content is None:
            content = self.file_store.read(relative)

        backup_id = str(uuid.uuid4())
        timestamp = datetime.now()
        backup_name = f"{int(timestamp.timestamp() * 1000)}-{backup_id}-{Path(relative).name}"
        backup_path = self.backup_dir / backup_name
        try:
            data = encode_text(content, relative)
        except SafeModifyError as e:
            raise BackupError(f"Failed to write backup for {relative}: {e.message}") from e

        with self._manifest_transaction() as manifest:
            try:
                with open(backup_path, "wb") as f:
                    f.write(data)
            except OSError as e:
                raise BackupError(f"Failed to write backup for {relative}: {e}") from e

            entry = BackupEntry(
                id=backup_id,
                file_path=relative,
                backup_path=str(backup_path),
                timestamp=timestamp,
                original_content=content,
                reason=reason,
            )
            manifest.entries.append(entry)

            evicted = []
            while len(manifest.entries) > self.settings.max_backups:
                evicted.append(manifest.entries.pop(0))

            try:
                self._save_manifest(manifest)
            except BackupError:
                backup_path.unlink(missing_ok=True)
                raise

        # Files go after the manifest no longer references them; a failed
        # unlink leaves an orphan that verify_integrity() reports.
        for old in evicted:
            self._delete_backup_file(old)
            logger.debug(f"Evicted backup {old.id} ({old.file_path})")

        logger.info(f"Created backup {backup_id} for {relative}")
        return entry

    def restore_backup(self, backup_id: str) -> OperationOutcome:
        """Write a backup's content back over its original file."""
        entry = self.get_backup(backup_id)
        if entry is None:
            return OperationOutcome.fail(ErrorKind.NOT_FOUND, "Backup not found")

        content = None
        backup_file = self._backup_file(entry)
        if backup_file.is_file():
            try:
                with open(backup_file, encoding="utf-8", newline="") as f:
                    content = f.read()
            except OSError as e:
                logger.warning(f"Could not read backup file {backup_file}: {e}")

        if content is None:
            if entry.original_content is None:
                return OperationOutcome.fail(
                    ErrorKind.NO_RECOVERY_PATH,
                    "Backup file not found and no cached content",
                )
            logger.debug(f"Backup file for {backup_id} missing, using cached content")
            content = entry.original_content

        try:
            self.file_store.write(entry.file_path, content)
        except SafeModifyError as e:
            return OperationOutcome.fail(e.kind, e.message)

        logger.info(f"Restored {entry.file_path} from backup {backup_id}")
        return OperationOutcome.ok()

    def get_backup(self, backup_id: str) -> Optional[BackupEntry]:
        manifest = self._load_manifest()
        return next((e for e in manifest.entries if e.id == backup_id), None)

    def get_backups_for_file(self, file_path: str) -> List[BackupEntry]:
        """All backups of one file, newest first."""
        try:
            relative = self.file_store.relative_path(file_path)
        except OutsideProjectError:
            return []
        return [e for e in self.get_all_backups() if e.file_path == relative]

    def get_latest_backup(self, file_path: str) -> Optional[BackupEntry]:
        backups = self.get_backups_for_file(file_path)
        return backups[0] if backups else None

    def get_all_backups(self) -> List[BackupEntry]:
        """All backups, newest first."""
        entries = list(reversed(self._load_manifest().entries))
        return sorted(entries, key=lambda e: e.timestamp, reverse=True)

    def delete_backup(self, backup_id: str) -> bool:
        if not self.manifest_path.exists():
            return False
        with self._manifest_transaction() as manifest:
            entry = next((e for e in manifest.entries if e.id == backup_id), None)
            if entry is None:
                return False
            manifest.entries.remove(entry)
            self._save_manifest(manifest)
        self._delete_backup_file(entry)
        return True

    def cleanup_old_backups(self, older_than_days: int = 30) -> int:
        """Delete backups older than ``older_than_days``; returns the count."""
        if not self.manifest_path.exists():
            return 0
        cutoff = datetime.now() - timedelta(days=older_than_days)
        with self._manifest_transaction() as manifest:
            expired = [e for e in manifest.entries if e.timestamp < cutoff]
            manifest.entries = [e for e in manifest.entries if e.timestamp >= cutoff]
            self._save_manifest(manifest)

        for entry in expired:
            self._delete_backup_file(entry)

        if expired:
            logger.info(f"Cleaned up {len(expired)} backup(s) older than {older_than_days} days")
        return len(expired)

    def get_statistics(self) -> BackupStatistics:
        entries = self._load_manifest().entries
        if not entries:
            return BackupStatistics()

        total_size = 0
        for entry in entries:
            backup_file = self._backup_file(entry)
            if backup_file.is_file():
                total_size += backup_file.stat().st_size

        timestamps = [e.timestamp for e in entries]
        return BackupStatistics(
            total_backups=len(entries),
            total_size=total_size,
            oldest_backup=min(timestamps),
            newest_backup=max(timestamps),
            files_covered=len({e.file_path for e in entries}),
        )

    def verify_integrity(self) -> IntegrityReport:
        """Cross-check the manifest against the files in the backup directory."""
        manifest = self._load_manifest()
        issues: List[str] = []
        missing: List[str] = []
        orphans: List[str] = []

        for entry in manifest.entries:
            if not self._backup_file(entry).is_file() and entry.original_content is None:
                missing.append(entry.id)
                issues.append(f"Backup file missing and no cached content: {entry.id}")

        referenced = {e.backup_file_name for e in manifest.entries}
        if self.backup_dir.is_dir():
            for child in sorted(self.backup_dir.iterdir()):
                if child.name == MANIFEST_NAME or child.name.startswith("."):
                    continue
                if child.name not in referenced:
                    orphans.append(child.name)
                    issues.append(f"Orphaned backup file: {child.name}")

        return IntegrityReport(
            valid=not issues,
            issues=issues,
            missing_entries=missing,
            orphaned_files=orphans,
        )

    @contextmanager
    def _manifest_transaction(self) -> Iterator[BackupManifest]:
        # The lock file lives inside the backup directory.
        self._ensure_backup_dir()
        try:
            self._lock.acquire()
        except Timeout as e:
            raise BackupError(f"Timed out waiting for backup manifest lock: {e}") from e
        try:
            yield self._load_manifest()
        finally:
            self._lock.release()

    def _load_manifest(self) -> BackupManifest:
        if not self.manifest_path.exists():
            return BackupManifest()
        try:
            return BackupManifest.model_validate_json(
                self.manifest_path.read_text(encoding="utf-8")
            )
        except (OSError, ValidationError) as e:
            logger.warning(f"Backup manifest unreadable, starting empty: {e}")
            return BackupManifest()

    def _save_manifest(self, manifest: BackupManifest) -> None:
        try:
            self.manifest_path.write_text(manifest.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise BackupError(f"Failed to save backup manifest: {e}") from e

    def _ensure_backup_dir(self) -> None:
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            gitignore = self.backup_dir / ".gitignore"
            if not gitignore.exists():
                gitignore.write_text("*\n", encoding="utf-8")
        except OSError as e:
            raise BackupError(f"Failed to create backup directory {self.backup_dir}: {e}") from e

    def _backup_file(self, entry: BackupEntry) -> Path:
        recorded = Path(entry.backup_path)
        if recorded.is_file():
            return recorded
        # Manifest paths are absolute; fall back to the name if the project moved.
        return self.backup_dir / entry.backup_file_name

    def _delete_backup_file(self, entry: BackupEntry) -> None:
        backup_file = self._backup_file(entry)
        try:
            backup_file.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete backup file {backup_file}: {e}")
