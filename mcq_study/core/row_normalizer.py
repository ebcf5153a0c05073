from __future__ import annotations

import re
from typing import Any, List, Mapping, Optional, Union

from mcq_study.core.answer_format import interpret, relabel
from mcq_study.core.columns import ColumnMatcher, either, exact, first_value, fuzzy, values_for
from mcq_study.core.dedupe import dedupe_options
from mcq_study.models.schemas import (
    DEFAULT_TOPIC_NAME,
    MissingAnswerPolicy,
    Question,
    RowSkip,
    SkipReason,
)

_SOURCE_EXT_RE = re.compile(r"\.(csv|txt|xlsx|xls)$", re.IGNORECASE)

QUESTION_COLUMNS = either("Question")
TOPIC_COLUMNS = either("Topic")
ANSWER_COLUMNS = [exact("Correct Answer"), fuzzy("Correct Answer"), fuzzy("Correct"), fuzzy("Answer")]
NO_COLUMNS = [exact("Question No.")]
EXPLANATION_COLUMNS = either("Explanation")
PAGE_COLUMNS = [exact("Page No."), fuzzy("Page No")]

_OPTION_LETTERS = ("A", "B", "C", "D")

# Tried in order; the first layout with at least one non-blank cell is used.
OPTION_LAYOUTS: List[List[ColumnMatcher]] = [
    [exact(f"Option {x}") for x in _OPTION_LETTERS],
    [exact(f"Option{i}") for i in range(1, 5)],
    [exact(x) for x in _OPTION_LETTERS],
    [fuzzy(f"Option {x}") for x in _OPTION_LETTERS],
]

NormalizeOutcome = Union[Question, RowSkip]


def topic_from_source(source_name: str) -> str:
    name = _SOURCE_EXT_RE.sub("", str(source_name or "").strip())
    return name or DEFAULT_TOPIC_NAME


def extract_options(row: Mapping[str, Any]) -> List[str]:
    for layout in OPTION_LAYOUTS:
        found = values_for(row, layout)
        if found:
            return dedupe_options(found)
    return []


def _coerce_policy(policy: Union[MissingAnswerPolicy, str, None]) -> MissingAnswerPolicy:
    if policy is None:
        return MissingAnswerPolicy.FIRST_OPTION
    return MissingAnswerPolicy(policy)


def normalize_row(
    row: Mapping[str, Any],
    source_name: str,
    row_index: int,
    *,
    missing_answer_policy: Union[MissingAnswerPolicy, str, None] = None,
) -> NormalizeOutcome:
    """
    Turn one tabular row into a Question, or a RowSkip.

    `row_index` is 0-based; rows without a "Question No." column are numbered
    from 1. Never raises for bad row content.
    """
    question_text = first_value(row, QUESTION_COLUMNS)
    if not question_text:
        return RowSkip(reason=SkipReason.MISSING_QUESTION, row_index=row_index)

    options = extract_options(row)
    if len(options) < 2:
        return RowSkip(reason=SkipReason.TOO_FEW_OPTIONS, row_index=row_index)

    correct = first_value(row, ANSWER_COLUMNS)
    if not correct:
        if _coerce_policy(missing_answer_policy) == MissingAnswerPolicy.REJECT:
            return RowSkip(reason=SkipReason.MISSING_ANSWER, row_index=row_index)
        correct = options[0]

    topic = first_value(row, TOPIC_COLUMNS) or topic_from_source(source_name)

    return Question(
        no=first_value(row, NO_COLUMNS) or str(row_index + 1),
        question=question_text,
        options=options,
        correct_answer=correct,
        explanation=first_value(row, EXPLANATION_COLUMNS),
        topic=topic,
        page_no=first_value(row, PAGE_COLUMNS),
    )


def _trim_padding(slots: List[str]) -> List[str]:
    """Drop trailing blank slots only; interior blanks keep their position."""
    out = list(slots)
    while out and not out[-1]:
        out.pop()
    return out


def _realign_answer(correct: str, slots: List[str], options: List[str]) -> Optional[str]:
    """
    Re-point a positional answer after `slots` were compacted into `options`.

    Returns None when the answer names an empty or missing slot. Literal
    answers are returned unchanged.
    """
    match = interpret(correct)
    if match is None or not match.positional:
        return correct
    if not 0 <= match.index < len(slots) or not slots[match.index]:
        return None
    target = slots[match.index].lower()
    new_index = [o.lower() for o in options].index(target)
    if new_index == match.index:
        return correct
    return relabel(correct, new_index)


def normalize_ocr_record(
    record: Mapping[str, Any],
    topic_name: Optional[str],
    index: int,
    *,
    missing_answer_policy: Union[MissingAnswerPolicy, str, None] = None,
) -> NormalizeOutcome:
    """
    Same acceptance rules as `normalize_row` for a record already cleaned by
    `llm_json.clean_ocr_questions`.

    Blank slots are dropped so the stored options stay unique. A letter or
    "Option N" answer is re-pointed at the option it named in the model's
    slot layout; one naming a blank slot is skipped as UNRESOLVED_ANSWER.
    `no` and `pageNo` are kept verbatim.
    """
    question_text = str(record.get("question") or "").strip()
    if not question_text:
        return RowSkip(reason=SkipReason.MISSING_QUESTION, row_index=index)

    slots = _trim_padding([str(o).strip() for o in (record.get("options") or [])])
    options = dedupe_options([o for o in slots if o])
    if len(options) < 2:
        return RowSkip(reason=SkipReason.TOO_FEW_OPTIONS, row_index=index)

    correct = str(record.get("correctAnswer") or "").strip()
    if not correct:
        if _coerce_policy(missing_answer_policy) == MissingAnswerPolicy.REJECT:
            return RowSkip(reason=SkipReason.MISSING_ANSWER, row_index=index)
        correct = options[0]
    else:
        realigned = _realign_answer(correct, slots, options)
        if realigned is None:
            return RowSkip(reason=SkipReason.UNRESOLVED_ANSWER, row_index=index)
        correct = realigned

    return Question(
        no=str(record.get("no") or ""),
        question=question_text,
        options=options,
        correct_answer=correct,
        explanation=str(record.get("explanation") or ""),
        topic=str(topic_name or "").strip() or DEFAULT_TOPIC_NAME,
        page_no=str(record.get("pageNo") or ""),
    )
