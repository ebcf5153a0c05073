from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

EXCERPT_LIMIT = 200


class ErrorCode(str, Enum):
    # 4xx - Client / input errors
    INVALID_REQUEST = "E4000"
    SOURCE_UNREADABLE = "E4001"
    INVALID_IMAGE = "E4002"
    API_KEY_MISSING = "E4003"
    TOPIC_NOT_FOUND = "E4004"
    NO_VALID_ROWS = "E4221"
    QUESTION_COLUMN_MISSING = "E4222"

    # 5xx - Collaborator errors
    SERVICE_ERROR = "E5000"
    LLM_TIMEOUT = "E5002"
    STORE_UNAVAILABLE = "E5004"
    MALFORMED_RESPONSE = "E5021"
    INVALID_SHAPE = "E5022"


def excerpt(text: Any, limit: int = EXCERPT_LIMIT) -> str:
    s = "" if text is None else str(text)
    return s[:limit]


def build_error_payload(
    *,
    code: ErrorCode,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Canonical error shape handed to request handlers.

    `error` is the primary string message; `message` is kept as an alias.
    """
    payload: Dict[str, Any] = {"code": code.value, "error": str(message), "message": str(message)}
    if details is not None:
        payload["details"] = details
    if request_id:
        payload["request_id"] = str(request_id)
    return payload


class McqStudyError(Exception):
    """Base error for the MCQ study library."""

    code: ErrorCode = ErrorCode.SERVICE_ERROR

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self, request_id: Optional[str] = None) -> Dict[str, Any]:
        return build_error_payload(
            code=self.code,
            message=self.message,
            details=self.details,
            request_id=request_id,
        )


# --- Ingestion ---
class IngestionError(McqStudyError):
    """Batch-level import failure."""

    code = ErrorCode.INVALID_REQUEST


class NoValidRowsError(IngestionError):
    """Every row of a batch was skipped; nothing may be persisted."""

    code = ErrorCode.NO_VALID_ROWS

    def __init__(self, message: str, *, skipped_count: int = 0, source_excerpt: str = ""):
        self.skipped_count = int(skipped_count)
        self.excerpt = excerpt(source_excerpt)
        super().__init__(
            message,
            details={"skipped_count": self.skipped_count, "excerpt": self.excerpt},
        )


class MissingQuestionColumnError(NoValidRowsError):
    """No header names a question column, so every row would be skipped."""

    code = ErrorCode.QUESTION_COLUMN_MISSING

    def __init__(self, headers: list[str], *, skipped_count: int = 0, source_excerpt: str = ""):
        self.headers = list(headers)
        super().__init__(
            "Could not find a 'Question' column. Found: " + ", ".join(self.headers),
            skipped_count=skipped_count,
            source_excerpt=source_excerpt,
        )
        self.details["headers"] = self.headers


class SourceParseError(IngestionError):
    code = ErrorCode.SOURCE_UNREADABLE


# --- LLM response decoding ---
class LLMResponseError(McqStudyError):
    """LLM output could not be decoded into the expected payload."""

    def __init__(self, message: str, *, raw_text: Any = ""):
        self.excerpt = excerpt(raw_text)
        super().__init__(message, details={"excerpt": self.excerpt})


class MalformedResponseError(LLMResponseError):
    """No recoverable JSON object in the response text."""

    code = ErrorCode.MALFORMED_RESPONSE


class InvalidShapeError(LLMResponseError):
    """Parsed JSON lacks a `questions` array."""

    code = ErrorCode.INVALID_SHAPE


# --- Collaborators ---
class InvalidImageError(McqStudyError):
    code = ErrorCode.INVALID_IMAGE


class MissingApiKeyError(McqStudyError):
    code = ErrorCode.API_KEY_MISSING


class LLMServiceError(McqStudyError):
    code = ErrorCode.SERVICE_ERROR


class StoreUnavailableError(McqStudyError):
    code = ErrorCode.STORE_UNAVAILABLE


class LLMTimeoutError(LLMServiceError):
    """Connection/timeouts persisted through every retry."""

    code = ErrorCode.LLM_TIMEOUT
