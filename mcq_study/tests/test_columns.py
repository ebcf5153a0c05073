from mcq_study.core.columns import exact, first_value, fuzzy, has_question_column, values_for


def test_exact_match_is_case_insensitive_and_trimmed():
    assert exact("Question").header(["question "]) == "question "


def test_fuzzy_question_skips_number_and_id_columns():
    headers = ["Question No.", "QuestionId", "The Question Text"]
    assert fuzzy("Question").header(headers) == "The Question Text"


def test_fuzzy_for_other_targets_does_not_exclude():
    assert fuzzy("Answer").header(["Answer No."]) == "Answer No."


def test_first_value_skips_blank_cells():
    row = {"Correct Answer": "  ", "Answer": "B"}
    assert first_value(row, [exact("Correct Answer"), fuzzy("Answer")]) == "B"


def test_values_for_returns_non_blank_values_in_matcher_order():
    row = {"B": "two", "A": "one", "C": "", "D": None}
    assert values_for(row, [exact(x) for x in "ABCD"]) == ["one", "two"]


def test_has_question_column():
    assert has_question_column(["No", "Question Text"]) is True
    assert has_question_column(["Prompt", "A", "B"]) is False
