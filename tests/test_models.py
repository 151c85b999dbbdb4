"""Tests for data models."""

from datetime import datetime

import pytest
from pydantic import ValidationError

from safe_modify.errors import AlreadyRevertedError, ErrorKind
from safe_modify.models import (
    BackupEntry,
    CodeSuggestion,
    HistoryEntry,
    HistoryStatus,
    ModificationResult,
    SafetyReport,
    SuggestionCategory,
    SyntaxIssue,
    ValidationResult,
)


class TestValidationModels:
    def test_syntax_errors_make_result_invalid(self):
        result = ValidationResult(valid=True, syntax_errors=[SyntaxIssue(message="bad")])
        assert not result.valid

    def test_warnings_do_not_affect_validity(self):
        result = ValidationResult(
            type_warnings=["t"], lint_warnings=["l"], safety_warnings=["s"]
        )
        assert result.valid
        assert result.warnings == ["t", "l", "s"]

    def test_safety_issues_make_report_unsafe(self):
        assert not SafetyReport(issues=["removed export"]).safe
        assert SafetyReport(warnings=["fewer try blocks"]).safe


class TestModificationResult:
    def test_failure_helper(self):
        result = ModificationResult.failure(
            "a.js", ErrorKind.NOT_FOUND, "missing", suggestion_id="s1"
        )

        assert not result.success
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.error.message == "missing"
        assert not result.validation.valid
        assert result.suggestion_id == "s1"

    def test_results_are_immutable(self):
        result = ModificationResult(success=True, file_path="a.js")
        with pytest.raises(ValidationError):
            result.success = False

    def test_default_validations_are_independent(self):
        first = ModificationResult(success=True, file_path="a.js")
        second = ModificationResult(success=True, file_path="b.js")
        assert first.validation is not second.validation


class TestHistoryEntry:
    def _entry(self, **kwargs):
        values = {
            "id": "h1",
            "timestamp": datetime.now(),
            "file_path": "a.js",
            "status": HistoryStatus.APPLIED,
        }
        values.update(kwargs)
        return HistoryEntry(**values)

    def test_mark_reverted_once(self):
        entry = self._entry()
        entry.mark_reverted()

        assert entry.is_reverted
        with pytest.raises(AlreadyRevertedError) as exc_info:
            entry.mark_reverted()
        assert exc_info.value.kind == ErrorKind.ALREADY_REVERTED

    def test_status_serializes_as_string(self):
        assert self._entry().model_dump(mode="json")["status"] == "applied"


class TestBackupEntry:
    def test_backup_file_name(self):
        entry = BackupEntry(
            id="abc",
            file_path="src/a.js",
            backup_path="/tmp/project/.safe-modify-backups/1700000000000-abc-a.js",
            timestamp=datetime.now(),
        )
        assert entry.backup_file_name == "1700000000000-abc-a.js"


class TestCodeSuggestion:
    def test_accepts_camel_case_payload(self):
        suggestion = CodeSuggestion.model_validate(
            {
                "id": "s1",
                "category": "bundle-size",
                "originalCode": "a",
                "modifiedCode": "b",
                "lineStart": 3,
                "lineEnd": 4,
            }
        )

        assert suggestion.category == SuggestionCategory.BUNDLE_SIZE
        assert suggestion.original_code == "a"
        assert suggestion.line_start == 3
