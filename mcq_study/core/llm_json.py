"""
Decoder for OCR vision responses.

Models are asked for bare JSON but routinely wrap it in markdown fences,
surround it with prose, or leave trailing commas. This module recovers the
payload or fails with a typed error; it knows nothing about prompts or
providers.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, List, Optional

from mcq_study.core.dedupe import dedupe_options
from mcq_study.models.schemas import OcrPage
from mcq_study.utils.errors import InvalidShapeError, MalformedResponseError
from mcq_study.utils.observability import log_event

logger = logging.getLogger(__name__)

OPTION_SLOTS = 4

_LEADING_FENCE_RE = re.compile(r"^```(?:json)?\s*", re.IGNORECASE)
_TRAILING_FENCE_RE = re.compile(r"\s*```\s*$")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")


def _strip_code_fences(text: str) -> str:
    t = _LEADING_FENCE_RE.sub("", text, count=1)
    return _TRAILING_FENCE_RE.sub("", t, count=1)


def extract_json_payload(raw_text: Optional[str]) -> Dict[str, Any]:
    """
    Recover the `{..., "questions": [...]}` object from raw model output.

    Raises:
        MalformedResponseError: no `{...}` span, or it does not parse even
            after trailing-comma repair.
        InvalidShapeError: parsed, but `questions` is missing or not a list.

    An empty `questions` list is returned as-is; the caller decides whether
    that is worth surfacing.
    """
    original = "" if raw_text is None else str(raw_text)
    text = _strip_code_fences(original.strip())

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or start >= end:
        log_event(logger, "ocr_response_malformed", level="warning", stage="locate", length=len(original))
        raise MalformedResponseError(
            "LLM returned no JSON object", raw_text=original
        )

    block = _TRAILING_COMMA_RE.sub(r"\1", text[start : end + 1])

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        log_event(logger, "ocr_response_malformed", level="warning", stage="parse", error=str(e))
        raise MalformedResponseError(
            f"JSON parse error: {e.msg} (line {e.lineno}, column {e.colno})",
            raw_text=original,
        ) from e

    if not isinstance(data, dict):
        raise InvalidShapeError(
            f"Expected a JSON object, got {type(data).__name__}", raw_text=original
        )
    questions = data.get("questions")
    if not isinstance(questions, list):
        raise InvalidShapeError(
            f"Invalid format: 'questions' is {type(questions).__name__}, expected a list",
            raw_text=original,
        )
    return data


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def clean_ocr_questions(questions: List[Any], page_no: str) -> List[Dict[str, Any]]:
    """
    Normalise raw question dicts from the model: options trimmed, deduplicated
    case-insensitively and padded/truncated to four slots; the answer upper
    cased; the batch page number attached to every record.
    """
    cleaned: List[Dict[str, Any]] = []
    for q in questions or []:
        if not isinstance(q, dict):
            q = {}
        raw_options = q.get("options")
        if not isinstance(raw_options, list):
            raw_options = []
        options = dedupe_options(_text(o) for o in raw_options)
        options = (options + [""] * OPTION_SLOTS)[:OPTION_SLOTS]

        cleaned.append(
            {
                "id": _text(q.get("id")),
                "no": _text(q.get("no")),
                "question": _text(q.get("question")),
                "options": options,
                "correctAnswer": (_text(q.get("correctAnswer")) or "A").upper(),
                "explanation": _text(q.get("explanation")),
                "topic": _text(q.get("topic")),
                "pageNo": page_no,
            }
        )
    return cleaned


def extract_ocr_page(raw_text: Optional[str]) -> OcrPage:
    data = extract_json_payload(raw_text)
    page_no = _text(data.get("pageNo"))
    return OcrPage(page_no=page_no, questions=clean_ocr_questions(data["questions"], page_no))
