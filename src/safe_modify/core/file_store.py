"""Sandboxed read/write access to files inside a project."""

import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

from safe_modify.errors import (
    FileNotInProjectError,
    FileWriteError,
    OutsideProjectError,
)
from safe_modify.logging_config import logger

PathLike = Union[str, Path]

DEFAULT_EXCLUDES = {"node_modules", ".git", "dist", "build", ".next"}


def encode_text(content: str, path: PathLike) -> bytes:
    """UTF-8 bytes of ``content``; line endings are kept as given."""
    try:
        return content.encode("utf-8")
    except UnicodeError as e:
        raise FileWriteError(f"Cannot encode content for {path}: {e}") from e


class FileStore:
    """Reads and writes project files, refusing paths outside the root.

    No locking and no atomic rename: callers take a backup before writing.
    """

    def __init__(self, project_root: PathLike):
        self.project_root = Path(project_root).resolve()

    def resolve(self, path: PathLike) -> Path:
        """Resolve ``path`` against the project root and check containment."""
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.project_root / candidate
        resolved = candidate.resolve()
        if resolved != self.project_root and self.project_root not in resolved.parents:
            raise OutsideProjectError(f"Path is outside project directory: {path}")
        return resolved

    def is_within_project(self, path: PathLike) -> bool:
        try:
            self.resolve(path)
        except OutsideProjectError:
            return False
        return True

    def relative_path(self, path: PathLike) -> str:
        """Canonical project-relative POSIX path, used as a ledger key."""
        return self.resolve(path).relative_to(self.project_root).as_posix()

    def exists(self, path: PathLike) -> bool:
        try:
            return self.resolve(path).exists()
        except OutsideProjectError:
            return False

    def read(self, path: PathLike) -> str:
        """Return the text content of a project file."""
        resolved = self.resolve(path)
        if not resolved.is_file():
            raise FileNotInProjectError(f"File not found: {path}")
        try:
            with open(resolved, encoding="utf-8", newline="") as f:
                return f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise FileNotInProjectError(f"Failed to read {path}: {e}") from e

    def write(self, path: PathLike, content: str) -> Path:
        """Write ``content`` to a project file, creating parent directories."""
        resolved = self.resolve(path)
        # Must encode before open() truncates the file.
        data = encode_text(content, path)
        try:
            resolved.parent.mkdir(parents=True, exist_ok=True)
            with open(resolved, "wb") as f:
                f.write(data)
        except OSError as e:
            raise FileWriteError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Wrote {len(content)} chars to {resolved}")
        return resolved

    def copy(self, source: PathLike, destination: PathLike) -> Path:
        resolved_source = self.resolve(source)
        resolved_dest = self.resolve(destination)
        if not resolved_source.is_file():
            raise FileNotInProjectError(f"File not found: {source}")
        try:
            resolved_dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(resolved_source, resolved_dest)
        except OSError as e:
            raise FileWriteError(f"Failed to copy {source} to {destination}: {e}") from e
        return resolved_dest

    def delete(self, path: PathLike) -> None:
        """Delete a project file; deleting a missing file is a no-op."""
        resolved = self.resolve(path)
        if not resolved.exists():
            return
        try:
            resolved.unlink()
        except OSError as e:
            raise FileWriteError(f"Failed to delete {path}: {e}") from e

    def file_info(self, path: PathLike) -> Optional[Dict]:
        try:
            resolved = self.resolve(path)
            stats = resolved.stat()
        except (OutsideProjectError, OSError):
            return None
        return {
            "path": str(resolved),
            "relative_path": resolved.relative_to(self.project_root).as_posix(),
            "name": resolved.name,
            "extension": resolved.suffix,
            "size": stats.st_size,
            "is_directory": resolved.is_dir(),
            "modified_at": datetime.fromtimestamp(stats.st_mtime),
        }

    def list_files(
        self,
        directory: PathLike = ".",
        recursive: bool = False,
        extensions: Optional[Iterable[str]] = None,
        exclude: Optional[Iterable[str]] = None,
    ) -> List[str]:
        """List project-relative file paths under ``directory``.

        Dot-entries and common build/vendor directories are skipped.
        """
        root = self.resolve(directory)
        wanted = set(extensions or [])
        excluded = DEFAULT_EXCLUDES | set(exclude or [])
        results: List[str] = []

        for current, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(
                d for d in dirnames if d not in excluded and not d.startswith(".")
            )
            if not recursive:
                dirnames[:] = []
            for name in sorted(filenames):
                if name in excluded or name.startswith("."):
                    continue
                if wanted and Path(name).suffix not in wanted:
                    continue
                full = Path(current) / name
                results.append(full.relative_to(self.project_root).as_posix())

        return results
