"""Per-project configuration loading."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from safe_modify.logging_config import logger

CONFIG_FILE_NAMES = [
    ".safe-modifyrc.json",
    ".safe-modifyrc",
    "safe-modify.config.json",
]


class _Section(BaseModel):
    # Accept both snake_case and camelCase keys.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GitSettings(_Section):
    auto_commit: bool = True
    branch_prefix: str = "ai-optimization/"
    require_clean_working_dir: bool = True
    commit_message_prefix: str = "[safe-modify]"


class BackupSettings(_Section):
    enabled: bool = True
    max_backups: int = Field(default=50, gt=0)
    backup_dir: str = ".safe-modify-backups"


class ModificationSettings(_Section):
    reject_ambiguous_matches: bool = False


class SafeModifyConfig(_Section):
    """Complete configuration for one project."""

    git: GitSettings = Field(default_factory=GitSettings)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    modification: ModificationSettings = Field(default_factory=ModificationSettings)


def find_config_file(project_root: Path) -> Optional[Path]:
    """Return the first config file present in the project root."""
    for file_name in CONFIG_FILE_NAMES:
        candidate = Path(project_root) / file_name
        if candidate.is_file():
            return candidate
    return None


def _deep_merge(target: Dict[str, Any], source: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(target)
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        elif value is not None:
            result[key] = value
    return result


def load_config(
    project_root: Path, overrides: Optional[Dict[str, Any]] = None
) -> SafeModifyConfig:
    """Load configuration for a project.

    File values are merged over the defaults, then ``overrides`` over those.
    An unreadable or invalid file falls back to the defaults.
    """
    defaults = SafeModifyConfig().model_dump()
    file_values: Dict[str, Any] = {}

    config_file = find_config_file(project_root)
    if config_file is not None:
        try:
            file_values = json.loads(config_file.read_text(encoding="utf-8"))
            if not isinstance(file_values, dict):
                raise ValueError("top-level value must be an object")
            file_values = SafeModifyConfig.model_validate(file_values).model_dump(
                exclude_unset=True
            )
        except (OSError, ValueError) as e:
            # ValidationError is a ValueError
            logger.warning(f"Ignoring config file {config_file}: {e}")
            file_values = {}

    merged = _deep_merge(defaults, file_values)
    if overrides:
        merged = _deep_merge(merged, overrides)

    try:
        return SafeModifyConfig.model_validate(merged)
    except ValidationError as e:
        logger.warning(f"Invalid configuration overrides, using defaults: {e}")
        return SafeModifyConfig()
