"""Source validation: the contract consumed by the orchestrator and a default implementation."""

import ast
import re
from pathlib import Path
from typing import Dict, List, Optional, Protocol

import tree_sitter_javascript as tsjs
import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

from safe_modify.logging_config import logger
from safe_modify.models.validation import SafetyReport, SyntaxIssue, ValidationResult

JS_LANGUAGE = Language(tsjs.language())
TS_LANGUAGE = Language(tsts.language_typescript())
TSX_LANGUAGE = Language(tsts.language_tsx())

LANGUAGE_BY_EXTENSION = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
    ".py": "python",
}

TYPED_EXTENSIONS = {".ts", ".tsx", ".py"}

MAX_LINE_LENGTH = 120

_NAMED_EXPORT = re.compile(r"export\s+(?:async\s+)?(?:const|let|var|function\*?|class)\s+(\w+)")
_EXPORT_LIST = re.compile(r"export\s*{([^}]+)}")
_DEFAULT_EXPORT = re.compile(r"export\s+default\s+(?:async\s+)?(?:function|class)\s+(\w+)")
_PY_PUBLIC_DEF = re.compile(r"^(?:async\s+)?(?:def|class)\s+([A-Za-z]\w*)", re.MULTILINE)
_PY_ALL = re.compile(r"__all__\s*=\s*[\[(]([^\])]*)[\])]", re.DOTALL)
_TRY_BLOCK = re.compile(r"\btry\s*(?:{|:)")
_TS_ANNOTATION = re.compile(r":\s*\w+")
_PY_ANNOTATION = re.compile(r"(?::[ \t]*[A-Za-z_][\w.\[\], ]*(?=[,)=\n])|->[ \t]*\w+)")


class SourceValidator(Protocol):
    """Contract for syntax and safety checks. Implementations never raise."""

    def check_syntax(self, code: str, file_path: Optional[str] = None) -> ValidationResult:
        ...

    def check_safety(
        self, original_code: str, modified_code: str, file_path: Optional[str] = None
    ) -> SafetyReport:
        ...


def language_for_file(file_path: Optional[str]) -> Optional[str]:
    if not file_path:
        return None
    return LANGUAGE_BY_EXTENSION.get(Path(file_path).suffix.lower())


def _parser_for(language: str) -> Parser:
    parser = Parser()
    if language == "javascript":
        parser.language = JS_LANGUAGE
    elif language == "typescript":
        parser.language = TS_LANGUAGE
    elif language == "tsx":
        parser.language = TSX_LANGUAGE
    else:
        raise ValueError(f"Unsupported language: {language}")
    return parser


def _first_error_node(node: Node) -> Optional[Node]:
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = _first_error_node(child)
        if found is not None:
            return found
    return node


class DefaultSourceValidator:
    """tree-sitter/ast backed validator with heuristic lint and safety checks."""

    def __init__(self):
        self._parsers: Dict[str, Parser] = {}

    def check_syntax(self, code: str, file_path: Optional[str] = None) -> ValidationResult:
        """Parse ``code`` and collect syntax errors plus lint/type warnings."""
        language = language_for_file(file_path)
        syntax_errors: List[SyntaxIssue] = []

        if language == "python":
            syntax_errors.extend(self._python_syntax_errors(code))
        elif language is not None:
            syntax_errors.extend(self._tree_sitter_syntax_errors(code, language))

        type_warnings: List[str] = []
        if file_path and Path(file_path).suffix.lower() in (".ts", ".tsx"):
            type_warnings = self._type_warnings(code)

        return ValidationResult(
            valid=not syntax_errors,
            syntax_errors=syntax_errors,
            type_warnings=type_warnings,
            lint_warnings=self._lint_warnings(code, language),
        )

    def check_safety(
        self, original_code: str, modified_code: str, file_path: Optional[str] = None
    ) -> SafetyReport:
        """Compare two versions of code; removed exports are hard issues."""
        issues: List[str] = []
        warnings: List[str] = []
        language = language_for_file(file_path)

        original_exports = extract_export_names(original_code, language)
        modified_exports = set(extract_export_names(modified_code, language))
        removed = [name for name in original_exports if name not in modified_exports]
        if removed:
            issues.append(f"Modification removes exports: {', '.join(removed)}")

        original_lines = len(original_code.split("\n"))
        modified_lines = len(modified_code.split("\n"))
        line_diff = original_lines - modified_lines
        if line_diff > 20 and line_diff > original_lines * 0.5:
            warnings.append(
                f"Modification removes {line_diff} lines "
                f"({round(line_diff / original_lines * 100)}% of original)"
            )

        if len(_TRY_BLOCK.findall(modified_code)) < len(_TRY_BLOCK.findall(original_code)):
            warnings.append("Modification may reduce error handling")

        suffix = Path(file_path).suffix.lower() if file_path else ""
        if suffix in TYPED_EXTENSIONS:
            pattern = _PY_ANNOTATION if suffix == ".py" else _TS_ANNOTATION
            original_types = len(pattern.findall(original_code))
            modified_types = len(pattern.findall(modified_code))
            if modified_types < original_types * 0.8:
                warnings.append("Modification may reduce type safety")

        return SafetyReport(safe=not issues, issues=issues, warnings=warnings)

    def _get_parser(self, language: str) -> Parser:
        if language not in self._parsers:
            self._parsers[language] = _parser_for(language)
        return self._parsers[language]

    def _tree_sitter_syntax_errors(self, code: str, language: str) -> List[SyntaxIssue]:
        try:
            tree = self._get_parser(language).parse(code.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Could not parse {language} source: {e}")
            return [SyntaxIssue(message=str(e))]

        if not tree.root_node.has_error:
            return []

        node = _first_error_node(tree.root_node) or tree.root_node
        line, column = node.start_point
        if node.is_missing:
            message = f"Missing {node.type} ({line + 1}:{column + 1})"
        else:
            message = f"Unexpected token ({line + 1}:{column + 1})"
        return [SyntaxIssue(message=message, line=line + 1, column=column + 1)]

    @staticmethod
    def _python_syntax_errors(code: str) -> List[SyntaxIssue]:
        try:
            ast.parse(code)
        except SyntaxError as e:
            return [
                SyntaxIssue(
                    message=f"{e.msg} ({e.lineno or 0}:{e.offset or 0})",
                    line=e.lineno or 0,
                    column=e.offset or 0,
                )
            ]
        except ValueError as e:
            # Null bytes in source
            return [SyntaxIssue(message=str(e))]
        return []

    @staticmethod
    def _lint_warnings(code: str, language: Optional[str]) -> List[str]:
        warnings: List[str] = []
        comment_prefix = "#" if language == "python" else "//"
        for number, line in enumerate(code.split("\n"), start=1):
            stripped = line.strip()
            is_comment = stripped.startswith(comment_prefix)
            if "console.log" in line and not is_comment:
                warnings.append(f"Line {number}: Unexpected console.log statement")
            if re.search(r"\bdebugger\b", line) and not is_comment:
                warnings.append(f"Line {number}: Unexpected debugger statement")
            if len(line) > MAX_LINE_LENGTH:
                warnings.append(f"Line {number}: Line exceeds {MAX_LINE_LENGTH} characters")
            if stripped and line != line.rstrip():
                warnings.append(f"Line {number}: Trailing whitespace")
        return warnings

    @staticmethod
    def _type_warnings(code: str) -> List[str]:
        warnings: List[str] = []
        any_count = len(re.findall(r":\s*any\b", code))
        if any_count:
            warnings.append(
                f"Found {any_count} usage(s) of 'any' type - consider using more specific types"
            )
        non_null = len(re.findall(r"!\.", code))
        if non_null > 3:
            warnings.append(
                f"Found {non_null} non-null assertions - consider proper null handling"
            )
        ts_ignore = code.count("@ts-ignore")
        if ts_ignore:
            warnings.append(
                f"Found {ts_ignore} @ts-ignore comment(s) - consider fixing the underlying type issues"
            )
        return warnings


def extract_export_names(code: str, language: Optional[str] = None) -> List[str]:
    """Names a module exposes: JS/TS ``export`` forms, or Python public definitions."""
    names: List[str] = []

    if language == "python":
        names.extend(_PY_PUBLIC_DEF.findall(code))
        for match in _PY_ALL.finditer(code):
            names.extend(re.findall(r"['\"](\w+)['\"]", match.group(1)))
    else:
        names.extend(_NAMED_EXPORT.findall(code))
        for match in _EXPORT_LIST.finditer(code):
            for item in match.group(1).split(","):
                name = re.split(r"\s+as\s+", item.strip())[0].strip()
                if name:
                    names.append(name)
        names.extend(_DEFAULT_EXPORT.findall(code))

    # Preserve first-seen order without duplicates
    return list(dict.fromkeys(names))


def estimate_change_impact(original_code: str, modified_code: str) -> Dict:
    """Rough severity of a change based on how many lines differ positionally."""
    original_lines = original_code.split("\n")
    modified_lines = modified_code.split("\n")

    changed = 0
    for index in range(max(len(original_lines), len(modified_lines))):
        before = original_lines[index] if index < len(original_lines) else None
        after = modified_lines[index] if index < len(modified_lines) else None
        if before != after:
            changed += 1

    change_ratio = changed / len(original_lines)
    if change_ratio < 0.1:
        severity, confidence = "low", 0.95
    elif change_ratio < 0.3:
        severity, confidence = "medium", 0.85
    else:
        severity, confidence = "high", 0.7

    return {"severity": severity, "affected_lines": changed, "confidence": confidence}
