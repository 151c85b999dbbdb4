"""Tests for applying several suggestions to one file."""

import tempfile
from pathlib import Path
from unittest.mock import patch

import git
import pytest

from safe_modify.config import GitSettings, SafeModifyConfig
from safe_modify.core.orchestrator import ModificationOrchestrator
from safe_modify.errors import ErrorKind
from safe_modify.models.git import GitOperationResult
from safe_modify.models.history import HistoryStatus
from safe_modify.models.suggestion import CodeSuggestion

SOURCE = """\
export function render(items) {
  const first = items.map((item) => item.id);
  const second = items.filter(Boolean);
  const third = items.length;
  return [first, second, third];
}
"""


def suggestion(suggestion_id, original, modified, line_start):
    return CodeSuggestion(
        id=suggestion_id,
        title=f"Suggestion {suggestion_id}",
        original_code=original,
        modified_code=modified,
        line_start=line_start,
        line_end=line_start,
    )


class TestBatchApply:
    """Test batch ordering, conflicts and all-or-nothing validation."""

    @pytest.fixture
    def git_repo(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            repo_path = Path(temp_dir)
            repo = git.Repo.init(repo_path)
            repo.config_writer().set_value("user", "name", "Test User").release()
            repo.config_writer().set_value("user", "email", "test@example.com").release()

            (repo_path / "render.js").write_text(SOURCE)
            repo.index.add(["render.js"])
            repo.index.commit("Initial commit")

            yield repo_path, repo

    @pytest.fixture
    def orchestrator(self, git_repo):
        repo_path, _ = git_repo
        return ModificationOrchestrator(repo_path, config=SafeModifyConfig())

    def test_all_suggestions_share_one_backup_and_commit(self, orchestrator, git_repo):
        repo_path, repo = git_repo
        head = repo.head.commit.hexsha

        results = orchestrator.apply_multiple_suggestions(
            "render.js",
            [
                suggestion("a", "items.map((item) => item.id)", "items.map(({ id }) => id)", 2),
                suggestion("b", "const third = items.length;", "const third = items.length ?? 0;", 4),
            ],
        )

        assert [r.success for r in results] == [True, True]
        assert [r.suggestion_id for r in results] == ["a", "b"]
        assert len({r.backup_id for r in results}) == 1
        assert len({r.commit_hash for r in results}) == 1
        assert len(orchestrator.get_backups()) == 1

        assert repo.head.commit.parents[0].hexsha == head
        assert repo.head.commit.message.strip() == "[safe-modify] Apply 2 optimizations"
        content = (repo_path / "render.js").read_text()
        assert "items.map(({ id }) => id)" in content
        assert "items.length ?? 0" in content

        history = orchestrator.get_history()
        assert len(history) == 2
        assert {h.suggestion_id for h in history} == {"a", "b"}

    def test_nested_suggestion_conflicts(self, orchestrator, git_repo):
        repo_path, repo = git_repo
        head = repo.head.commit.hexsha
        outer = suggestion(
            "1",
            "const second = items.filter(Boolean);\n  const third = items.length;",
            "const second = items.filter((x) => !!x);\n  const third = second.length;",
            3,
        )
        inner = suggestion("2", "const third = items.length;", "const third = 0;", 2)
        other = suggestion("3", "item.id", "item.key", 1)

        results = orchestrator.apply_multiple_suggestions("render.js", [outer, inner, other])

        assert results[0].success
        assert results[1].error_kind == ErrorKind.CONFLICT
        assert results[2].success

        assert len(orchestrator.get_backups()) == 1
        commits = list(repo.iter_commits(f"{head}..HEAD"))
        assert len(commits) == 1
        assert results[0].commit_hash == results[2].commit_hash == commits[0].hexsha
        assert results[1].commit_hash is None

        content = (repo_path / "render.js").read_text()
        assert "second.length" in content
        assert "item.key" in content

        statuses = {h.suggestion_id: h.status for h in orchestrator.get_history()}
        assert statuses == {
            "1": HistoryStatus.APPLIED,
            "2": HistoryStatus.REJECTED,
            "3": HistoryStatus.APPLIED,
        }

    def test_suggestions_applied_in_descending_line_order(self, git_repo):
        repo_path, _ = git_repo
        (repo_path / "notes.txt").write_text("x = foo\n")
        config = SafeModifyConfig(git=GitSettings(require_clean_working_dir=False, auto_commit=False))
        orchestrator = ModificationOrchestrator(repo_path, config=config)

        # Input order would conflict; line order makes the chain work.
        results = orchestrator.apply_multiple_suggestions(
            "notes.txt",
            [
                suggestion("low", "bar", "baz", 1),
                suggestion("high", "foo", "bar", 10),
            ],
        )

        assert [r.success for r in results] == [True, True]
        assert (repo_path / "notes.txt").read_text() == "x = baz\n"

    def test_equal_lines_keep_input_order(self, git_repo):
        repo_path, _ = git_repo
        (repo_path / "notes.txt").write_text("one\n")
        config = SafeModifyConfig(git=GitSettings(require_clean_working_dir=False, auto_commit=False))
        orchestrator = ModificationOrchestrator(repo_path, config=config)

        results = orchestrator.apply_multiple_suggestions(
            "notes.txt",
            [suggestion("first", "one", "two", 5), suggestion("second", "two", "three", 5)],
        )

        assert [r.success for r in results] == [True, True]
        assert (repo_path / "notes.txt").read_text() == "three\n"

    def test_invalid_combined_result_writes_nothing(self, orchestrator, git_repo):
        repo_path, repo = git_repo
        head = repo.head.commit.hexsha

        results = orchestrator.apply_multiple_suggestions(
            "render.js",
            [
                suggestion("ok", "item.id", "item.key", 2),
                suggestion("broken", "return [first, second, third];", "return [first, second,;", 5),
                suggestion("gone", "not in the file", "x", 9),
            ],
        )

        assert [r.success for r in results] == [False, False, False]
        assert results[0].error_kind == ErrorKind.VALIDATION_FAILED
        assert results[1].error_kind == ErrorKind.VALIDATION_FAILED
        assert results[2].error_kind == ErrorKind.CONFLICT
        assert results[0].validation.syntax_errors

        assert (repo_path / "render.js").read_text() == SOURCE
        assert orchestrator.get_backups() == []
        assert repo.head.commit.hexsha == head

    def test_removed_export_in_batch_is_a_safety_violation(self, orchestrator, git_repo):
        repo_path, _ = git_repo

        results = orchestrator.apply_multiple_suggestions(
            "render.js",
            [suggestion("unexport", "export function render", "function render", 1)],
        )

        assert results[0].error_kind == ErrorKind.SAFETY_VIOLATION
        assert (repo_path / "render.js").read_text() == SOURCE

    def test_every_suggestion_conflicting_writes_nothing(self, orchestrator, git_repo):
        repo_path, _ = git_repo

        results = orchestrator.apply_multiple_suggestions(
            "render.js",
            [suggestion("x", "missing one", "a", 1), suggestion("y", "missing two", "b", 2)],
        )

        assert [r.error_kind for r in results] == [ErrorKind.CONFLICT, ErrorKind.CONFLICT]
        assert orchestrator.get_backups() == []
        assert (repo_path / "render.js").read_text() == SOURCE

    def test_dirty_file_fails_every_suggestion(self, orchestrator, git_repo):
        repo_path, _ = git_repo
        (repo_path / "render.js").write_text(SOURCE + "// wip\n")

        with patch.object(orchestrator.file_store, "read") as mock_read:
            results = orchestrator.apply_multiple_suggestions(
                "render.js", [suggestion("a", "item.id", "item.key", 2)]
            )

        assert results[0].error_kind == ErrorKind.PRECONDITION_FAILED
        mock_read.assert_not_called()

    def test_branch_failure_aborts_batch(self, orchestrator, git_repo):
        repo_path, _ = git_repo
        failed = GitOperationResult(success=False, error="Failed to create branch: boom")

        with patch.object(orchestrator.vcs, "create_branch", return_value=failed):
            results = orchestrator.apply_multiple_suggestions(
                "render.js",
                [suggestion("a", "item.id", "item.key", 2)],
                create_branch=True,
                branch_name="batch",
            )

        assert results[0].error_kind == ErrorKind.VCS_ERROR
        assert results[0].backup_id is not None
        assert (repo_path / "render.js").read_text() == SOURCE

    def test_empty_batch(self, orchestrator):
        assert orchestrator.apply_multiple_suggestions("render.js", []) == []
