from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Union

from mcq_study.core.columns import has_question_column
from mcq_study.core.dedupe import dedupe_questions
from mcq_study.core.row_normalizer import normalize_ocr_record, normalize_row
from mcq_study.core.tabular_source import TabularSource, parse_csv_text, parse_tabular
from mcq_study.models.schemas import (
    DEFAULT_TOPIC_NAME,
    ImportResult,
    MissingAnswerPolicy,
    OcrPage,
    Question,
    RowSkip,
    SkipReason,
    Topic,
)
from mcq_study.services.storage import merge_topic
from mcq_study.utils.errors import MissingQuestionColumnError, NoValidRowsError
from mcq_study.utils.observability import log_event
from mcq_study.utils.settings import get_settings

logger = logging.getLogger(__name__)

PASTED_SOURCE_NAME = "Imported Text"

Policy = Union[MissingAnswerPolicy, str, None]


def _policy(policy: Policy) -> MissingAnswerPolicy:
    if policy is None:
        policy = get_settings().missing_answer_policy
    return MissingAnswerPolicy(policy)


def group_by_topic(questions: Iterable[Question], *, user_id: Optional[str] = None) -> List[Topic]:
    """One new Topic per distinct topic name, in first-seen order."""
    groups: dict[str, List[Question]] = {}
    for q in questions:
        name = q.topic or DEFAULT_TOPIC_NAME
        groups.setdefault(name, []).append(q)
    extra = {"user_id": user_id} if user_id else {}
    return [Topic(name=name, questions=qs, **extra) for name, qs in groups.items()]


def _finish(
    outcomes: List[Union[Question, RowSkip]],
    *,
    source_name: str,
    source_excerpt: str,
    user_id: Optional[str],
) -> ImportResult:
    reasons: Counter = Counter()
    accepted: List[Question] = []
    for outcome in outcomes:
        if isinstance(outcome, RowSkip):
            reasons[outcome.reason.value] += 1
            log_event(
                logger,
                "import_row_skipped",
                level="debug",
                source=source_name,
                row_index=outcome.row_index,
                reason=outcome.reason.value,
            )
            continue
        accepted.append(outcome)

    kept, dropped = dedupe_questions(accepted)
    if dropped:
        reasons[SkipReason.DUPLICATE.value] += dropped

    if not kept:
        skipped = sum(reasons.values())
        log_event(logger, "import_failed", level="warning", source=source_name, skipped=skipped)
        raise NoValidRowsError(
            "Could not parse any valid questions. Check the format.",
            skipped_count=skipped,
            source_excerpt=source_excerpt,
        )

    topics = group_by_topic(kept, user_id=user_id)
    result = ImportResult.from_counts(topics, reasons, imported=len(kept))
    log_event(
        logger,
        "import_completed",
        source=source_name,
        imported=result.imported_count,
        skipped=result.skipped_count,
        duplicates=result.duplicate_count,
        topics=[t.name for t in topics],
    )
    return result


def import_rows(
    rows: Sequence[Mapping[str, Any]],
    source_name: str,
    *,
    headers: Optional[Sequence[str]] = None,
    missing_answer_policy: Policy = None,
    user_id: Optional[str] = None,
) -> ImportResult:
    """
    Normalise every row, drop within-batch duplicates and group by topic.

    Bad rows are counted in the result, never raised. Fails with
    NoValidRowsError when nothing survives; its subclass
    MissingQuestionColumnError when `headers` show no question column at all.
    """
    first = dict(rows[0]) if rows else {}
    if headers and not has_question_column(headers):
        log_event(logger, "import_failed", level="warning", source=source_name, skipped=len(rows))
        raise MissingQuestionColumnError(
            list(headers), skipped_count=len(rows), source_excerpt=str(first)
        )

    policy = _policy(missing_answer_policy)
    outcomes = [
        normalize_row(row, source_name, i, missing_answer_policy=policy)
        for i, row in enumerate(rows)
    ]
    return _finish(outcomes, source_name=source_name, source_excerpt=str(first), user_id=user_id)


def import_source(source: TabularSource, source_name: str, **kwargs: Any) -> ImportResult:
    return import_rows(source.rows, source_name, headers=source.headers, **kwargs)


def import_file(data: Union[bytes, str], filename: str, **kwargs: Any) -> ImportResult:
    """Parse an uploaded .csv/.txt/.xlsx/.xls file and import it; topic defaults to the file name."""
    return import_source(parse_tabular(data, filename), filename, **kwargs)


def import_text(text: str, topic_name: Optional[str] = None, **kwargs: Any) -> ImportResult:
    """Import pasted CSV text. Rows without a Topic column land in `topic_name`."""
    source_name = str(topic_name or "").strip() or PASTED_SOURCE_NAME
    return import_source(parse_csv_text(text or ""), source_name, **kwargs)


def import_ocr_pages(
    pages: Iterable[OcrPage],
    topic_name: str,
    *,
    missing_answer_policy: Policy = None,
    user_id: Optional[str] = None,
) -> ImportResult:
    """Collect the records of several scanned pages into a single topic."""
    policy = _policy(missing_answer_policy)
    outcomes: List[Union[Question, RowSkip]] = []
    index = 0
    for page in pages:
        for record in page.questions:
            outcomes.append(
                normalize_ocr_record(record, topic_name, index, missing_answer_policy=policy)
            )
            index += 1
    return _finish(
        outcomes,
        source_name=str(topic_name or DEFAULT_TOPIC_NAME),
        source_excerpt="",
        user_id=user_id,
    )


def persist_import(
    store,
    result: ImportResult,
    *,
    user_id: Optional[str] = None,
    target_topic_id: Optional[str] = None,
) -> List[Topic]:
    """
    Save imported topics.

    With `target_topic_id` naming an existing topic every imported question is
    appended to it, relabelled with that topic's name. Otherwise each topic is
    stored as a new one.
    """
    uid = user_id or get_settings().default_user_id
    if target_topic_id:
        existing = store.get_topic(target_topic_id)
        if existing is not None:
            questions = [
                q.model_copy(update={"topic": existing.name})
                for t in result.topics
                for q in t.questions
            ]
            merged = Topic(id=existing.id, name=existing.name, questions=questions, user_id=uid)
            return [merge_topic(store, merged)]

    saved: List[Topic] = []
    for topic in result.topics:
        saved.append(merge_topic(store, topic.model_copy(update={"user_id": uid})))
    return saved
