"""
Spreadsheet decode for answer imports, and the blank import template.

Decoding is the one blocking step of an import, so it runs in a worker
thread; row validation only starts once the whole sheet has been read.
"""

from __future__ import annotations

import asyncio
import io
from pathlib import PurePath
from typing import Any

import pandas as pd

from ..domain.imports import RawRow
from ..domain.models import LIKERT_LABELS, YES_NO_LABELS, Guide, ResponseType
from ..infrastructure.config import ImportConfig, get_settings
from ..infrastructure.exceptions import (
    FileTooLargeError,
    SpreadsheetParseError,
    UnsupportedFileTypeError,
)
from ..infrastructure.logging import LogContext, get_logger

logger = get_logger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_ENGINES = {".xlsx": "openpyxl", ".xls": "xlrd"}

_TEMPLATE_HEADERS = {
    "es": ("Número de pregunta", "Respuesta", "Notas"),
    "en": ("Question number", "Answer", "Notes"),
}


def file_extension(filename: str) -> str:
    return PurePath(filename or "").suffix.lower()


def check_upload(filename: str, size: int, config: ImportConfig | None = None) -> None:
    """
    Reject files by extension and size before any decoding happens.

    Raises:
        UnsupportedFileTypeError: extension not in ``allowed_extensions``
        FileTooLargeError: more than ``max_file_size_mb``
    """
    config = config or get_settings().imports
    if file_extension(filename) not in config.allowed_extensions:
        raise UnsupportedFileTypeError(filename, config.allowed_extensions)
    if size > config.max_file_size_bytes:
        raise FileTooLargeError(filename, size, config.max_file_size_bytes)


def _cell(value: Any) -> Any:
    if value is None:
        return None
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        pass
    return value


def read_rows(content: bytes, filename: str, header_rows: int = 1) -> list[RawRow]:
    """Decode the first sheet into (question number, answer, notes) rows."""
    engine = _ENGINES.get(file_extension(filename))
    frame = pd.read_excel(
        io.BytesIO(content),
        sheet_name=0,
        header=None,
        skiprows=header_rows,
        dtype=object,
        engine=engine,
    )
    rows: list[RawRow] = []
    for values in frame.itertuples(index=False, name=None):
        cells = [_cell(v) for v in values[:3]]
        cells += [None] * (3 - len(cells))
        rows.append(RawRow(*cells))
    return rows


async def parse_spreadsheet(
    content: bytes, filename: str, config: ImportConfig | None = None
) -> list[RawRow]:
    """
    Check and decode an uploaded workbook.

    Raises:
        UnsupportedFileTypeError, FileTooLargeError: before decoding starts
        SpreadsheetParseError: the bytes are not a readable workbook
    """
    config = config or get_settings().imports
    check_upload(filename, len(content), config)

    with LogContext(file_name=filename, operation="parse_spreadsheet"):
        try:
            rows = await asyncio.to_thread(read_rows, content, filename, config.header_rows)
        except Exception as e:
            logger.warning(f"Could not decode {filename}: {e}")
            raise SpreadsheetParseError(filename, str(e)) from e
        logger.info(f"Decoded {len(rows)} rows from {filename}")
    return rows


def build_template_workbook(guide: Guide, language: str = "es") -> bytes:
    """
    Blank answer sheet for one guide.

    Sheet one has the three import columns with every question number filled
    in and a drop-down of valid answers; sheet two lists the question texts.
    """
    lang = "en" if language == "en" else "es"
    number_col, answer_col, notes_col = _TEMPLATE_HEADERS[lang]

    questions = [q for q in guide.iter_questions() if q.number > 0]
    answers = pd.DataFrame(
        {
            number_col: [q.number for q in questions],
            answer_col: [""] * len(questions),
            notes_col: [""] * len(questions),
        }
    )
    reference = pd.DataFrame(
        {
            number_col: [q.number for q in questions],
            "Pregunta" if lang == "es" else "Question": [q.text(lang) for q in questions],
            "Opciones" if lang == "es" else "Options": [
                ", ".join(YES_NO_LABELS if q.response_type is ResponseType.YES_NO else LIKERT_LABELS)
                for q in questions
            ],
        }
    )

    bio = io.BytesIO()
    with pd.ExcelWriter(bio, engine="xlsxwriter") as writer:
        answers.to_excel(writer, index=False, sheet_name="Respuestas" if lang == "es" else "Answers")
        reference.to_excel(writer, index=False, sheet_name="Preguntas" if lang == "es" else "Questions")

        sheet = writer.sheets["Respuestas" if lang == "es" else "Answers"]
        sheet.set_column(0, 0, 20)
        sheet.set_column(1, 1, 18)
        sheet.set_column(2, 2, 40)
        for row, question in enumerate(questions, start=1):
            options = YES_NO_LABELS if question.response_type is ResponseType.YES_NO else LIKERT_LABELS
            sheet.data_validation(row, 1, row, 1, {"validate": "list", "source": list(options)})
        writer.sheets["Preguntas" if lang == "es" else "Questions"].set_column(1, 1, 90)
    return bio.getvalue()
