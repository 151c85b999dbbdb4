"""Code suggestion model produced by the suggestion engine."""

from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class SuggestionCategory(str, Enum):
    """Category of an optimization suggestion."""

    PERFORMANCE = "performance"
    ACCESSIBILITY = "accessibility"
    MAINTAINABILITY = "maintainability"
    BUNDLE_SIZE = "bundle-size"
    UX = "ux"
    CODE_QUALITY = "code-quality"


class SuggestionPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CodeSuggestion(BaseModel):
    """A proposed literal replacement inside one file."""

    # Suggestion engines emit camelCase keys (originalCode, lineStart, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str = ""
    description: str = ""
    category: SuggestionCategory = SuggestionCategory.CODE_QUALITY
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    original_code: str
    modified_code: str
    explanation: str = ""
    line_start: int = 0
    line_end: int = 0
    confidence: float = 0.0
