"""
Correct-answer interpretation.

A question's `correct_answer` is free text written under one of several
conventions. Each convention is a strategy function; `ANSWER_STRATEGIES` is
tried in order and the first strategy that recognises the text decides the
outcome, so a new convention is appended without touching existing ones.

- LabeledOption: "Option B", "OptionC", "Option 2"
- BareLetter:    "C"
- LiteralText:   anything else ("P and Q", "1-ii, 2-iii, 3-i, 4-iv")
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

_LABELED_LETTER_RE = re.compile(r"^Option\s?([A-D])$", re.IGNORECASE)
_LABELED_DIGIT_RE = re.compile(r"^Option\s?([1-4])$", re.IGNORECASE)
_BARE_LETTER_RE = re.compile(r"^([A-D])$", re.IGNORECASE)


class AnswerConvention(str, Enum):
    LABELED_OPTION = "labeled_option"
    BARE_LETTER = "bare_letter"
    LITERAL_TEXT = "literal_text"


@dataclass(frozen=True)
class AnswerMatch:
    convention: AnswerConvention
    # Positional conventions carry an index, the literal one carries text.
    index: Optional[int] = None
    text: Optional[str] = None

    @property
    def positional(self) -> bool:
        return self.index is not None


def _letter_index(letter: str) -> int:
    return ord(letter.upper()) - ord("A")


def _labeled_option(answer: str) -> Optional[AnswerMatch]:
    m = _LABELED_LETTER_RE.match(answer)
    if m:
        return AnswerMatch(AnswerConvention.LABELED_OPTION, index=_letter_index(m.group(1)))
    m = _LABELED_DIGIT_RE.match(answer)
    if m:
        return AnswerMatch(AnswerConvention.LABELED_OPTION, index=int(m.group(1)) - 1)
    return None


def _bare_letter(answer: str) -> Optional[AnswerMatch]:
    m = _BARE_LETTER_RE.match(answer)
    if not m:
        return None
    return AnswerMatch(AnswerConvention.BARE_LETTER, index=_letter_index(m.group(1)))


def _literal_text(answer: str) -> Optional[AnswerMatch]:
    return AnswerMatch(AnswerConvention.LITERAL_TEXT, text=answer.lower())


ANSWER_STRATEGIES: List[Callable[[str], Optional[AnswerMatch]]] = [
    _labeled_option,
    _bare_letter,
    _literal_text,
]


def interpret(correct_answer: Optional[str]) -> Optional[AnswerMatch]:
    """Classify the answer text under the first convention that claims it."""
    answer = str(correct_answer or "").strip()
    if not answer:
        return None
    for strategy in ANSWER_STRATEGIES:
        match = strategy(answer)
        if match is not None:
            return match
    return None


def resolve(correct_answer: Optional[str], options: Sequence[str], selected: Optional[str]) -> bool:
    """
    True when `selected` is the correct option.

    Positional conventions compare `options[index]` to `selected` exactly; an
    index outside `options` is simply incorrect. The literal convention is a
    trimmed, case-insensitive string comparison.
    """
    if selected is None:
        return False
    match = interpret(correct_answer)
    if match is None:
        return False
    if match.positional:
        if not 0 <= match.index < len(options):
            return False
        return options[match.index] == selected
    return selected.strip().lower() == match.text


def relabel(correct_answer: str, index: int) -> str:
    """
    Point a positional answer at `index`, keeping its convention and case:
    "Option C" -> "Option B", "option3" -> "option2", "c" -> "b".
    """
    answer = str(correct_answer).strip()
    last = answer[-1]
    if last.isdigit():
        marker = str(index + 1)
    else:
        marker = chr(ord("A") + index)
        if last.islower():
            marker = marker.lower()
    return answer[:-1] + marker


def index_of(correct_answer: Optional[str], options: Sequence[str]) -> Optional[int]:
    """Position of the correct option for highlighting, or None."""
    match = interpret(correct_answer)
    if match is None:
        return None
    if match.positional:
        return match.index if 0 <= match.index < len(options) else None
    for i, opt in enumerate(options):
        if str(opt).strip().lower() == match.text:
            return i
    return None
