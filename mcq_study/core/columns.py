"""
Header resolution over loosely labelled rows.

Rows are plain ``{header: cell}`` mappings. A logical field is looked up with
an ordered list of matchers; the first matcher that yields a non-blank cell
wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

# "Question No." / "QuestionId" / "Question Number" are labels, not question text.
_QUESTION_FUZZY_EXCLUDES = ("no", "id", "number")


@dataclass(frozen=True)
class ColumnMatcher:
    target: str
    fuzzy: bool = False

    def header(self, headers: Sequence[str]) -> Optional[str]:
        target = self.target.strip().lower()
        if not self.fuzzy:
            for h in headers:
                if str(h).strip().lower() == target:
                    return h
            return None
        for h in headers:
            key = str(h).strip().lower()
            if target == "question" and any(x in key for x in _QUESTION_FUZZY_EXCLUDES):
                continue
            if target in key:
                return h
        return None


def exact(target: str) -> ColumnMatcher:
    return ColumnMatcher(target, fuzzy=False)


def fuzzy(target: str) -> ColumnMatcher:
    return ColumnMatcher(target, fuzzy=True)


def either(target: str) -> list[ColumnMatcher]:
    return [exact(target), fuzzy(target)]


def cell_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def first_value(row: Mapping[str, object], matchers: Sequence[ColumnMatcher]) -> str:
    """Stripped value of the first matcher hitting a non-blank cell, else ""."""
    headers = list(row.keys())
    for m in matchers:
        h = m.header(headers)
        if h is None:
            continue
        value = cell_text(row.get(h))
        if value:
            return value
    return ""


def values_for(row: Mapping[str, object], matchers: Sequence[ColumnMatcher]) -> list[str]:
    """Non-blank values for each matcher in order (one column per matcher)."""
    headers = list(row.keys())
    out: list[str] = []
    for m in matchers:
        h = m.header(headers)
        if h is None:
            continue
        value = cell_text(row.get(h))
        if value:
            out.append(value)
    return out


def has_question_column(headers: Sequence[str]) -> bool:
    return any("question" in str(h).lower() for h in headers)
