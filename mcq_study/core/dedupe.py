from __future__ import annotations

import re
from typing import Iterable, List, Tuple

from mcq_study.models.schemas import Question

_WS_RE = re.compile(r"\s+")


def dedupe_options(options: Iterable[str]) -> List[str]:
    """Drop case-insensitive duplicates (after trimming), keeping first occurrences in order."""
    seen: set[str] = set()
    deduped: List[str] = []
    for opt in options:
        key = str(opt).strip().lower()
        if key in seen:
            continue
        seen.add(key)
        deduped.append(opt)
    return deduped


def question_key(q: Question) -> Tuple[str, str, Tuple[str, ...]]:
    # Generic stems ("Which of the following is correct?") repeat with
    # different options, so the options are part of the identity.
    return (
        q.topic.strip().lower(),
        _WS_RE.sub(" ", q.question.strip().lower()),
        tuple(str(o).strip().lower() for o in q.options),
    )


def dedupe_questions(questions: Iterable[Question]) -> Tuple[List[Question], int]:
    """Drop repeated questions within one batch. Returns (kept, dropped_count)."""
    seen: set[tuple] = set()
    kept: List[Question] = []
    dropped = 0
    for q in questions:
        key = question_key(q)
        if key in seen:
            dropped += 1
            continue
        seen.add(key)
        kept.append(q)
    return kept, dropped
