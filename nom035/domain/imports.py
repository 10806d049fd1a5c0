"""
Row-level validation of imported questionnaire answers.

Never raises on malformed rows: every problem becomes an error or warning on
the returned ``ImportValidation`` so partial data stays recoverable.
Workbook decoding lives in ``nom035.utils.spreadsheets``.
"""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..infrastructure.logging import get_logger
from .mapping import get_total_questions
from .models import ANSWER_LABELS, GuideType
from .schemas import ImportedResponse, ImportRowError, ImportRowWarning, ImportValidation

logger = get_logger(__name__)

SUGGESTION_MAX_DISTANCE = 3
FIRST_DATA_ROW = 2  # row 1 holds the headers

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(slots=True, frozen=True)
class RawRow:
    """One spreadsheet row as decoded: question number, answer, notes."""

    question_number: Any = None
    answer: Any = None
    notes: Any = None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and not value.strip()


def parse_question_number(value: Any) -> int | None:
    """Leading integer of a cell value, or None when there is none."""
    if _is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def _cell_text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def find_closest_match(
    value: str,
    options: Iterable[str] = ANSWER_LABELS,
    max_distance: int = SUGGESTION_MAX_DISTANCE,
) -> str | None:
    """Nearest option by edit distance, ignoring case; the first option wins ties."""
    normalized = value.lower().strip()
    best: str | None = None
    best_distance = math.inf
    for option in options:
        distance = levenshtein_distance(normalized, option.lower())
        if distance < best_distance and distance <= max_distance:
            best_distance = distance
            best = option
    return best


def get_missing_questions(answered: Iterable[int], guide_type: GuideType | str) -> list[int]:
    answered_set = set(answered)
    total = get_total_questions(guide_type)
    return [n for n in range(1, total + 1) if n not in answered_set]


def validate_imported_data(
    rows: Iterable[RawRow],
    guide_type: GuideType | str,
    first_row: int = FIRST_DATA_ROW,
    suggestion_max_distance: int = SUGGESTION_MAX_DISTANCE,
) -> ImportValidation:
    """
    Validate decoded rows for one guide.

    Rows are processed in order. Empty rows and rows whose question number
    has no leading integer are dropped silently; an out-of-range number or
    an unknown answer label is an error; a repeated question number is a
    warning and the later row replaces the earlier one.
    """
    guide_type = GuideType(guide_type)
    total = get_total_questions(guide_type)

    errors: list[ImportRowError] = []
    warnings: list[ImportRowWarning] = []
    valid: dict[int, ImportedResponse] = {}
    invalid: list[ImportedResponse] = []

    for offset, raw in enumerate(rows):
        row = first_row + offset
        if _is_blank(raw.question_number) and _is_blank(raw.answer):
            continue

        number = parse_question_number(raw.question_number)
        if number is None:
            logger.debug(f"Row {row}: no question number in {raw.question_number!r}, skipped")
            continue

        answer = _cell_text(raw.answer)
        notes = _cell_text(raw.notes) or None
        imported = ImportedResponse(row=row, question_number=number, answer=answer, notes=notes)

        if number < 0 or number > total:
            errors.append(
                ImportRowError(
                    row=row,
                    question_number=number,
                    message=f"Question number out of range (0-{total})",
                    value=str(number),
                )
            )
            invalid.append(imported)
            continue

        if answer not in ANSWER_LABELS:
            errors.append(
                ImportRowError(
                    row=row,
                    question_number=number,
                    message=f'Invalid answer value: "{answer}"',
                    value=answer,
                )
            )
            suggestion = find_closest_match(answer, max_distance=suggestion_max_distance)
            if suggestion is not None:
                warnings.append(
                    ImportRowWarning(
                        row=row,
                        question_number=number,
                        message=f'Did you mean "{suggestion}"?',
                        suggestion=suggestion,
                    )
                )
            invalid.append(imported)
            continue

        if number in valid:
            warnings.append(
                ImportRowWarning(
                    row=row,
                    question_number=number,
                    message=f"Duplicate answer for question {number}. Using latest value.",
                )
            )
        valid[number] = imported

    answered = [n for n in valid if n > 0]
    result = ImportValidation(
        guide_type=guide_type,
        is_valid=not errors,
        errors=errors,
        warnings=warnings,
        valid_responses=list(valid.values()),
        invalid_responses=invalid,
        missing_questions=get_missing_questions(answered, guide_type),
        total_questions=total,
        answered_questions=len(answered),
    )
    logger.info(
        f"Validated import for guide {guide_type.value}: {len(valid)} valid, "
        f"{len(invalid)} invalid, {len(warnings)} warnings"
    )
    return result
