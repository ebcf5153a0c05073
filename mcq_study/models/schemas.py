from __future__ import annotations

import uuid
from collections import Counter
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_TOPIC_NAME = "General"
DEFAULT_USER_ID = "default"


def new_id() -> str:
    return str(uuid.uuid4())


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# --- Enums ---
class AIProvider(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


class MissingAnswerPolicy(str, Enum):
    FIRST_OPTION = "first_option"
    REJECT = "reject"


class SkipReason(str, Enum):
    MISSING_QUESTION = "missing_question"
    TOO_FEW_OPTIONS = "too_few_options"
    MISSING_ANSWER = "missing_answer"
    # Positional answer naming an empty or missing option slot.
    UNRESOLVED_ANSWER = "unresolved_answer"
    DUPLICATE = "duplicate"


# --- Records ---
class _Record(BaseModel):
    """Persisted records keep camelCase wire names; Python code uses snake_case."""

    model_config = ConfigDict(populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Question(_Record):
    """One MCQ record."""

    id: str = Field(default_factory=new_id)
    no: str = ""
    question: str
    options: List[str] = Field(default_factory=list)
    correct_answer: str = Field(..., alias="correctAnswer")
    explanation: str = ""
    topic: str = DEFAULT_TOPIC_NAME
    page_no: str = Field(default="", alias="pageNo")

    @field_validator("question")
    @classmethod
    def _question_not_blank(cls, v: str) -> str:
        if not str(v or "").strip():
            raise ValueError("question text cannot be empty")
        return v

    @field_validator("options")
    @classmethod
    def _options_unique(cls, v: List[str]) -> List[str]:
        seen: set[str] = set()
        for opt in v:
            key = str(opt).strip().lower()
            if key in seen:
                raise ValueError(f"duplicate option (case-insensitive): {opt!r}")
            seen.add(key)
        return v

    @field_validator("no", "explanation", "page_no", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v


class Topic(_Record):
    """A named, ordered collection of questions."""

    id: str = Field(default_factory=new_id)
    name: str
    questions: List[Question] = Field(default_factory=list)
    user_id: str = Field(default=DEFAULT_USER_ID, alias="userId")
    created_at: str = Field(default_factory=_now_iso, alias="createdAt")


class ApiKeys(_Record):
    user_id: str = Field(default=DEFAULT_USER_ID, alias="userId")
    openai_key: str = Field(default="", alias="openaiKey")
    gemini_key: str = Field(default="", alias="geminiKey")
    ai_provider: AIProvider = Field(default=AIProvider.OPENAI, alias="aiProvider")

    @field_validator("openai_key", "gemini_key", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    def key_for(self, provider: AIProvider) -> str:
        return self.openai_key if provider == AIProvider.OPENAI else self.gemini_key


# --- Pipeline results ---
class RowSkip(BaseModel):
    """Skip signal from the normalizers. Counted, never raised."""

    reason: SkipReason
    row_index: int


class ImportResult(BaseModel):
    topics: List[Topic] = Field(default_factory=list)
    imported_count: int = 0
    skipped_count: int = 0
    duplicate_count: int = 0
    skip_reasons: Dict[str, int] = Field(default_factory=dict)

    @classmethod
    def from_counts(
        cls, topics: List[Topic], reasons: Counter, imported: int
    ) -> "ImportResult":
        duplicates = int(reasons.get(SkipReason.DUPLICATE.value, 0))
        skipped = sum(int(n) for k, n in reasons.items() if k != SkipReason.DUPLICATE.value)
        return cls(
            topics=topics,
            imported_count=imported,
            skipped_count=skipped,
            duplicate_count=duplicates,
            skip_reasons=dict(reasons),
        )


class OcrPage(BaseModel):
    """Cleaned output of one vision call: records plus the page number seen."""

    page_no: str = ""
    questions: List[dict] = Field(default_factory=list)
