from __future__ import annotations

import pytest

from nom035.domain.imports import (
    RawRow,
    find_closest_match,
    get_missing_questions,
    levenshtein_distance,
    parse_question_number,
    validate_imported_data,
)


def test_out_of_range_question_is_rejected():
    result = validate_imported_data([RawRow(-1, "Sí")], "I")

    assert not result.is_valid
    assert result.errors[0].message == "Question number out of range (0-15)"
    assert result.errors[0].row == 2
    assert [r.question_number for r in result.invalid_responses] == [-1]
    assert result.valid_responses == []


def test_question_past_total_is_rejected():
    result = validate_imported_data([RawRow(16, "Sí")], "I")
    assert result.errors[0].value == "16"
    assert not result.has_usable_responses


def test_valid_label_is_accepted():
    result = validate_imported_data([RawRow(1, "Siempre")], "II")

    assert result.is_valid
    assert result.errors == []
    assert result.valid_responses[0].answer == "Siempre"
    assert result.answered_questions == 1
    assert 1 not in result.missing_questions
    assert len(result.missing_questions) == 45


def test_misspelled_label_gets_suggestion():
    result = validate_imported_data([RawRow(3, "Siempres")], "II")

    assert result.errors[0].message == 'Invalid answer value: "Siempres"'
    assert result.warnings[0].suggestion == "Siempre"
    assert result.warnings[0].message == 'Did you mean "Siempre"?'
    assert result.invalid_responses[0].question_number == 3


def test_nonsense_label_gets_no_suggestion():
    result = validate_imported_data([RawRow(3, "qwertyuiop")], "II")
    assert len(result.errors) == 1
    assert result.warnings == []


def test_duplicate_question_keeps_later_answer():
    result = validate_imported_data(
        [RawRow(5, "Nunca"), RawRow(6, "Siempre"), RawRow(5, "Casi siempre")], "II"
    )

    assert result.is_valid
    assert len(result.valid_responses) == 2
    by_number = {r.question_number: r for r in result.valid_responses}
    assert by_number[5].answer == "Casi siempre"
    assert by_number[5].row == 4
    assert result.warnings[0].message == "Duplicate answer for question 5. Using latest value."


def test_blank_and_unparseable_rows_are_skipped():
    rows = [
        RawRow(None, None),
        RawRow("", "   "),
        RawRow("abc", "Sí"),
        RawRow("2.", "No"),
    ]
    result = validate_imported_data(rows, "I")

    assert result.is_valid
    assert [(r.row, r.question_number) for r in result.valid_responses] == [(5, 2)]


def test_row_numbers_follow_first_row():
    result = validate_imported_data([RawRow(99, "Sí")], "I", first_row=5)
    assert result.errors[0].row == 5


def test_question_zero_is_in_range_but_not_counted():
    result = validate_imported_data([RawRow(0, "Sí"), RawRow(1, "Sí")], "I")

    assert result.is_valid
    assert result.answered_questions == 1
    assert {r.question_number for r in result.valid_responses} == {0, 1}


def test_notes_are_carried():
    result = validate_imported_data([RawRow(1, "No", "revisar")], "I")
    assert result.valid_responses[0].notes == "revisar"


@pytest.mark.parametrize(
    "value,expected",
    [(7, 7), (7.9, 7), ("12", 12), (" 3 ", 3), ("4a", 4), ("-1", -1), ("x1", None), (None, None), (True, None)],
)
def test_parse_question_number(value, expected):
    assert parse_question_number(value) == expected


def test_levenshtein_distance():
    assert levenshtein_distance("kitten", "sitting") == 3
    assert levenshtein_distance("", "abc") == 3
    assert levenshtein_distance("Nunca", "Nunca") == 0


def test_find_closest_match_is_case_insensitive():
    assert find_closest_match("SIEMPRE") == "Siempre"
    assert find_closest_match("casi nunka") == "Casi nunca"
    assert find_closest_match("si") == "Sí"
    assert find_closest_match("completely wrong") is None


def test_get_missing_questions():
    assert get_missing_questions([1, 2, 3], "I") == list(range(4, 16))
    assert get_missing_questions(range(1, 16), "I") == []
