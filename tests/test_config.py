"""Tests for per-project configuration loading."""

import json
import tempfile
from pathlib import Path

import pytest

from safe_modify.config import SafeModifyConfig, find_config_file, load_config


class TestLoadConfig:
    @pytest.fixture
    def project(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            yield Path(temp_dir)

    def test_defaults(self, project):
        config = load_config(project)

        assert config == SafeModifyConfig()
        assert config.git.auto_commit
        assert config.git.branch_prefix == "ai-optimization/"
        assert config.git.require_clean_working_dir
        assert config.backup.max_backups == 50
        assert config.backup.backup_dir == ".safe-modify-backups"
        assert not config.modification.reject_ambiguous_matches

    def test_camel_case_file_is_merged_over_defaults(self, project):
        (project / ".safe-modifyrc.json").write_text(
            json.dumps({"git": {"autoCommit": False}, "backup": {"maxBackups": 5}})
        )

        config = load_config(project)

        assert not config.git.auto_commit
        assert config.git.branch_prefix == "ai-optimization/"
        assert config.backup.max_backups == 5
        assert config.backup.enabled

    def test_snake_case_keys_are_accepted(self, project):
        (project / "safe-modify.config.json").write_text(
            json.dumps({"modification": {"reject_ambiguous_matches": True}})
        )
        assert load_config(project).modification.reject_ambiguous_matches

    def test_first_config_file_wins(self, project):
        (project / ".safe-modifyrc").write_text(json.dumps({"git": {"branchPrefix": "rc/"}}))
        (project / "safe-modify.config.json").write_text(
            json.dumps({"git": {"branchPrefix": "json/"}})
        )

        assert find_config_file(project).name == ".safe-modifyrc"
        assert load_config(project).git.branch_prefix == "rc/"

    @pytest.mark.parametrize(
        "content",
        ["{not json", "[1, 2]", json.dumps({"backup": {"maxBackups": 0}})],
    )
    def test_invalid_file_falls_back_to_defaults(self, project, content):
        (project / ".safe-modifyrc.json").write_text(content)
        assert load_config(project) == SafeModifyConfig()

    def test_overrides_win_over_file(self, project):
        (project / ".safe-modifyrc.json").write_text(json.dumps({"git": {"autoCommit": False}}))

        config = load_config(project, {"git": {"auto_commit": True, "branch_prefix": "x/"}})

        assert config.git.auto_commit
        assert config.git.branch_prefix == "x/"

    def test_configs_are_per_project(self, project):
        with tempfile.TemporaryDirectory() as other_dir:
            (project / ".safe-modifyrc.json").write_text(
                json.dumps({"backup": {"backupDir": ".mine"}})
            )

            assert load_config(project).backup.backup_dir == ".mine"
            assert load_config(Path(other_dir)).backup.backup_dir == ".safe-modify-backups"
