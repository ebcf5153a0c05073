import io

import pytest
from openpyxl import Workbook

from mcq_study.core.tabular_source import parse_csv_text, parse_tabular
from mcq_study.utils.errors import SourceParseError


def _xlsx_bytes(rows):
    wb = Workbook()
    ws = wb.active
    for r in rows:
        ws.append(r)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_csv_headers_are_trimmed_and_blank_lines_dropped():
    text = " Question , Option A ,Option B\n\nQ1?,a,b\n,,\nQ2?,c,d\n"
    src = parse_csv_text(text)
    assert src.headers == ["Question", "Option A", "Option B"]
    assert src.rows == [
        {"Question": "Q1?", "Option A": "a", "Option B": "b"},
        {"Question": "Q2?", "Option A": "c", "Option B": "d"},
    ]


def test_csv_quoted_commas_and_bom():
    data = '\ufeffQuestion,Correct Answer\n"Pick one, please",P and Q\n'.encode("utf-8")
    src = parse_tabular(data, "x.csv")
    assert src.headers == ["Question", "Correct Answer"]
    assert src.rows[0]["Question"] == "Pick one, please"


def test_short_rows_are_padded_with_blanks():
    src = parse_csv_text("Question,Option A,Option B\nQ?,a\n")
    assert src.rows[0]["Option B"] == ""


def test_first_duplicate_header_wins():
    src = parse_csv_text("Question,Question\nfirst,second\n")
    assert src.rows[0] == {"Question": "first"}


def test_empty_text():
    src = parse_csv_text("")
    assert src.headers == []
    assert src.rows == []


def test_xlsx_first_sheet_with_integral_numbers():
    data = _xlsx_bytes(
        [
            ["Question No.", "Question", "Option A", "Option B"],
            [1, "What is 2+2?", 3, 4.0],
            [None, None, None, None],
            [2, "Half of 3?", 1.5, 2],
        ]
    )
    src = parse_tabular(data, "Math.xlsx")
    assert src.headers == ["Question No.", "Question", "Option A", "Option B"]
    assert src.rows[0] == {"Question No.": "1", "Question": "What is 2+2?", "Option A": "3", "Option B": "4"}
    assert src.rows[1]["Option A"] == "1.5"
    assert len(src.rows) == 2


def test_unreadable_workbook_raises_source_parse_error():
    with pytest.raises(SourceParseError) as exc:
        parse_tabular(b"not a zip file", "broken.xlsx")
    assert exc.value.code.value == "E4001"


def test_non_utf8_text_raises_source_parse_error():
    with pytest.raises(SourceParseError):
        parse_tabular(b"\xff\xfe\xfa", "x.csv")
