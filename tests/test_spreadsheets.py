from __future__ import annotations

import asyncio
import io
import json

import pandas as pd
import pytest
from openpyxl import Workbook

from nom035.application.api import import_workbook
from nom035.domain.catalog import get_guide
from nom035.domain.models import Response
from nom035.domain.services import generate_report
from nom035.infrastructure.config import ImportConfig
from nom035.infrastructure.exceptions import (
    FileTooLargeError,
    SpreadsheetParseError,
    UnsupportedFileTypeError,
)
from nom035.utils.exports import make_json_export_payload, make_xlsx_export_bytes, result_to_dict
from nom035.utils.spreadsheets import (
    build_template_workbook,
    check_upload,
    parse_spreadsheet,
    read_rows,
)


def workbook_bytes(rows: list[tuple]) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.append(("Número de pregunta", "Respuesta", "Notas"))
    for row in rows:
        ws.append(row)
    bio = io.BytesIO()
    wb.save(bio)
    return bio.getvalue()


def test_read_rows_skips_header_and_pads():
    content = workbook_bytes([(1, "Sí"), (2, "No", "nota"), ("3", "Sí")])
    rows = read_rows(content, "answers.xlsx")

    assert [r.question_number for r in rows] == [1, 2, "3"]
    assert rows[0].notes is None
    assert rows[1].notes == "nota"


def test_parse_spreadsheet_runs_checks_and_decodes():
    content = workbook_bytes([(1, "Siempre"), (2, "Nunca")])
    rows = asyncio.run(parse_spreadsheet(content, "answers.xlsx", ImportConfig()))
    assert [r.answer for r in rows] == ["Siempre", "Nunca"]


def test_parse_spreadsheet_rejects_garbage():
    with pytest.raises(SpreadsheetParseError) as exc_info:
        asyncio.run(parse_spreadsheet(b"not a workbook", "answers.xlsx", ImportConfig()))
    assert exc_info.value.details["file_name"] == "answers.xlsx"
    assert "Excel" in exc_info.value.user_message


def test_check_upload_extension_and_size():
    config = ImportConfig(max_file_size_mb=1)
    check_upload("answers.XLSX", 10, config)

    with pytest.raises(UnsupportedFileTypeError):
        check_upload("answers.csv", 10, config)
    with pytest.raises(FileTooLargeError) as exc_info:
        check_upload("answers.xlsx", 2 * 1024 * 1024, config)
    assert exc_info.value.limit == 1024 * 1024


def test_import_workbook_end_to_end():
    content = workbook_bytes([(1, "Sí"), (2, "Sii"), (1, "No"), (40, "Sí")])
    validation, metadata = asyncio.run(import_workbook(content, "guia1.xlsx", "I"))

    assert metadata.file_name == "guia1.xlsx"
    assert metadata.file_size == len(content)
    assert [e.row for e in validation.errors] == [3, 5]
    assert validation.warnings[0].suggestion == "Sí"
    assert validation.valid_responses[0].answer == "No"
    assert validation.answered_questions == 1


def test_template_workbook_lists_every_question():
    guide = get_guide("III")
    content = build_template_workbook(guide, "es")

    sheets = pd.read_excel(io.BytesIO(content), sheet_name=None)
    assert list(sheets) == ["Respuestas", "Preguntas"]
    numbers = sheets["Respuestas"]["Número de pregunta"].tolist()
    assert numbers == list(range(1, 73))


def test_template_rows_import_cleanly():
    content = build_template_workbook(get_guide("I"), "en")
    rows = read_rows(content, "template.xlsx")
    assert len(rows) == 15
    assert all(r.answer is None for r in rows)


def test_exports():
    result = generate_report("I", [Response.of(n, "Sí") for n in range(1, 16)], 15)

    as_dict = result_to_dict(result)
    assert as_dict["overall_risk"]["level"] == "Alto"
    assert as_dict["category_risks"][0]["category_id"] == "traumatic-events"

    payload = json.loads(make_json_export_payload(result, "abc", "en"))
    assert payload["assessment_id"] == "abc"
    assert payload["report"]["overall_score"] == 15
    assert payload["recommendations"][0] == "Implement short-term preventive and corrective measures"

    frame = pd.read_excel(io.BytesIO(make_xlsx_export_bytes(result, "en")), sheet_name="Report")
    assert frame["Category"].tolist()[:4] == [
        c.category_name_en for c in result.category_risks
    ]
