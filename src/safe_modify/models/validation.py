"""Validation models shared by the validator and the orchestrator."""

from typing import List

from pydantic import BaseModel, model_validator


class SyntaxIssue(BaseModel):
    """A single syntax error with a 1-based location."""

    message: str
    line: int = 0
    column: int = 0


class ValidationResult(BaseModel):
    """Outcome of validating candidate file content."""

    valid: bool = True
    syntax_errors: List[SyntaxIssue] = []
    type_warnings: List[str] = []
    lint_warnings: List[str] = []
    safety_issues: List[str] = []
    safety_warnings: List[str] = []

    @model_validator(mode="after")
    def _syntax_errors_invalidate(self) -> "ValidationResult":
        # Warnings never flip validity; syntax errors always do.
        if self.syntax_errors:
            self.valid = False
        return self

    @property
    def warnings(self) -> List[str]:
        """All informational findings, in a stable order."""
        return [*self.type_warnings, *self.lint_warnings, *self.safety_warnings]


class SafetyReport(BaseModel):
    """Heuristic comparison of original and modified code."""

    safe: bool = True
    issues: List[str] = []
    warnings: List[str] = []

    @model_validator(mode="after")
    def _issues_are_unsafe(self) -> "SafetyReport":
        if self.issues:
            self.safe = False
        return self
