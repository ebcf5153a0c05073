import pytest

from mcq_study.core.importer import (
    group_by_topic,
    import_file,
    import_ocr_pages,
    import_rows,
    import_text,
    persist_import,
)
from mcq_study.models.schemas import OcrPage, Question, Topic
from mcq_study.services.storage import InMemoryTopicStore
from mcq_study.utils.errors import MissingQuestionColumnError, NoValidRowsError

HEADER = "Question No.,Question,Option A,Option B,Option C,Option D,Correct Answer,Explanation"


def test_csv_round_trip_single_question():
    csv_text = HEADER + "\n1,What is 2+2?,3,4,5,6,4,Math basics\n"
    result = import_file(csv_text.encode("utf-8"), "Math.csv")

    assert len(result.topics) == 1
    topic = result.topics[0]
    assert topic.name == "Math"
    assert len(topic.questions) == 1
    q = topic.questions[0]
    assert q.options == ["3", "4", "5", "6"]
    assert q.correct_answer == "4"
    assert q.no == "1"
    assert q.explanation == "Math basics"
    assert result.imported_count == 1
    assert result.skipped_count == 0


def test_all_rows_skipped_raises_and_produces_no_topics():
    csv_text = HEADER + "\n1,,a,b,c,d,A,\n2,Q?,a,,,,A,\n"
    with pytest.raises(NoValidRowsError) as exc:
        import_text(csv_text, "Broken")
    err = exc.value
    assert err.skipped_count == 2
    assert err.code.value == "E4221"
    assert len(err.excerpt) <= 200


def test_headers_without_question_column_fail_early():
    with pytest.raises(MissingQuestionColumnError) as exc:
        import_text("Prompt,A,B\nhi,x,y\n")
    assert "Found: Prompt, A, B" in str(exc.value)


def test_missing_question_column_is_caught_as_no_valid_rows():
    with pytest.raises(NoValidRowsError) as exc:
        import_text("Prompt,A,B\nhi,x,y\nbye,x,y\n")
    err = exc.value
    assert isinstance(err, MissingQuestionColumnError)
    assert err.code.value == "E4222"
    assert err.skipped_count == 2
    assert err.to_payload()["details"]["headers"] == ["Prompt", "A", "B"]


def test_bad_rows_are_counted_not_raised():
    csv_text = HEADER + "\n1,Good?,a,b,,,A,\n2,,a,b,,,A,\n3,Lonely?,a,,,,A,\n"
    result = import_text(csv_text, "Mixed")
    assert result.imported_count == 1
    assert result.skipped_count == 2
    assert result.skip_reasons == {"missing_question": 1, "too_few_options": 1}


def test_within_batch_duplicates_are_dropped_and_counted():
    csv_text = HEADER + "\n1,Same?,a,b,,,A,\n2,same?,A,B,,,A,\n"
    result = import_text(csv_text, "Dupes")
    assert result.imported_count == 1
    assert result.duplicate_count == 1
    assert result.skipped_count == 0


def test_rows_grouped_by_topic_in_first_seen_order():
    csv_text = (
        "Topic,Question,Option A,Option B,Correct Answer\n"
        "Bio,Cell?,a,b,A\n"
        ",Loose?,a,b,A\n"
        "Chem,Atom?,a,b,B\n"
        "Bio,Gene?,a,b,A\n"
    )
    result = import_text(csv_text, "Pasted")
    assert [t.name for t in result.topics] == ["Bio", "Pasted", "Chem"]
    assert [q.question for q in result.topics[0].questions] == ["Cell?", "Gene?"]


def test_pasted_text_without_topic_name_uses_default_source_name():
    result = import_text("Question,Option A,Option B\nQ?,a,b\n")
    assert result.topics[0].name == "Imported Text"


def test_page_number_survives_the_pipeline():
    rows = [
        {"Question": "Q1?", "Option A": "a", "Option B": "b", "Page No.": "42"},
        {"Question": "Q1?", "Option A": "a", "Option B": "b", "Page No.": "43"},
    ]
    result = import_rows(rows, "Scan", headers=list(rows[0].keys()))
    assert result.duplicate_count == 1
    assert result.topics[0].questions[0].page_no == "42"


def test_user_id_is_stamped_on_topics():
    result = import_text("Question,Option A,Option B\nQ?,a,b\n", "T", user_id="u1")
    assert result.topics[0].user_id == "u1"


def test_ocr_pages_land_in_one_topic():
    pages = [
        OcrPage(
            page_no="5",
            questions=[
                {"no": "1.", "question": "Q?", "options": ["a", "b", "c", "d"], "correctAnswer": "A", "pageNo": "5"},
                {"no": "2.", "question": "", "options": ["a", "b", "", ""], "correctAnswer": "A", "pageNo": "5"},
            ],
        ),
        OcrPage(
            page_no="6",
            questions=[
                {"no": "3.", "question": "R?", "options": ["x", "y", "", ""], "correctAnswer": "B", "pageNo": "6"},
            ],
        ),
    ]
    result = import_ocr_pages(pages, "Physics")
    assert [t.name for t in result.topics] == ["Physics"]
    qs = result.topics[0].questions
    assert [q.no for q in qs] == ["1.", "3."]
    assert [q.page_no for q in qs] == ["5", "6"]
    assert qs[1].options == ["x", "y"]
    assert result.skipped_count == 1


def test_ocr_pages_with_nothing_usable_raise():
    with pytest.raises(NoValidRowsError):
        import_ocr_pages([OcrPage(page_no="", questions=[])], "Empty")


def test_ocr_pages_keep_positional_answers_aligned():
    page = OcrPage(
        page_no="2",
        questions=[
            {"no": "1.", "question": "Q?", "options": ["x", "", "y", "z"], "correctAnswer": "C"},
            {"no": "2.", "question": "R?", "options": ["a", "", "b", "c"], "correctAnswer": "B"},
        ],
    )
    result = import_ocr_pages([page], "Scan")
    [q] = result.topics[0].questions
    assert q.options == ["x", "y", "z"]
    assert q.correct_answer == "B"
    assert result.skip_reasons == {"unresolved_answer": 1}


def test_group_by_topic_defaults_blank_topic_to_general():
    q = Question(question="Q?", options=["a", "b"], correct_answer="A", topic="")
    assert [t.name for t in group_by_topic([q])] == ["General"]


def test_persist_import_adds_new_topics():
    store = InMemoryTopicStore()
    result = import_text("Question,Option A,Option B\nQ?,a,b\n", "Fresh")
    saved = persist_import(store, result, user_id="u1")
    assert len(saved) == 1
    assert store.get_topics("u1")[0].name == "Fresh"


def test_persist_import_appends_into_target_topic():
    store = InMemoryTopicStore()
    existing = Topic(
        name="Biology",
        user_id="u1",
        questions=[Question(question="Old?", options=["a", "b"], correct_answer="A", topic="Biology")],
    )
    store.add_topic(existing)

    result = import_text("Question,Option A,Option B\nNew?,a,b\n", "Elsewhere")
    saved = persist_import(store, result, user_id="u1", target_topic_id=existing.id)

    assert [t.id for t in saved] == [existing.id]
    topic = store.get_topic(existing.id)
    assert [q.question for q in topic.questions] == ["Old?", "New?"]
    assert topic.questions[1].topic == "Biology"
    assert len(store.topics) == 1


def test_persist_import_unknown_target_falls_back_to_new_topic():
    store = InMemoryTopicStore()
    result = import_text("Question,Option A,Option B\nQ?,a,b\n", "Fresh")
    saved = persist_import(store, result, user_id="u1", target_topic_id="missing")
    assert saved[0].name == "Fresh"
