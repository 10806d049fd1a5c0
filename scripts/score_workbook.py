from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from nom035.application.api import import_workbook
from nom035.domain.catalog import get_guide
from nom035.domain.models import GuideType, NOM35Result, Response
from nom035.domain.schemas import ImportValidation
from nom035.domain.services import generate_report
from nom035.infrastructure.exceptions import SpreadsheetImportError
from nom035.utils.exports import make_json_export_payload, make_xlsx_export_bytes


def score_workbook(path: Path, guide_type: GuideType | str) -> tuple[ImportValidation, NOM35Result | None]:
    """Validate a filled-in answer workbook and score its usable rows."""
    content = path.read_bytes()
    validation, _ = asyncio.run(import_workbook(content, path.name, guide_type))
    if not validation.has_usable_responses:
        return validation, None

    guide = get_guide(validation.guide_type)
    responses = [Response.of(r.question_number, r.answer) for r in validation.valid_responses]
    return validation, generate_report(guide.guide_type, responses, guide.total_questions)


def print_validation(validation: ImportValidation) -> None:
    for error in validation.errors:
        print(f"[error] row {error.row}, question {error.question_number}: {error.message}", file=sys.stderr)
    for warning in validation.warnings:
        print(f"[warning] row {warning.row}, question {warning.question_number}: {warning.message}", file=sys.stderr)
    print(
        f"[score-workbook] {validation.answered_questions}/{validation.total_questions} answered, "
        f"{len(validation.missing_questions)} missing",
        file=sys.stderr,
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Score a NOM-035 answer workbook")
    parser.add_argument("workbook", type=Path, help="Path to the .xlsx or .xls file")
    parser.add_argument("--guide", required=True, choices=[g.value for g in GuideType])
    parser.add_argument("--lang", default="es", choices=["es", "en"])
    parser.add_argument("--output", type=Path, help="Write the report here (.json or .xlsx)")
    args = parser.parse_args(argv)

    if not args.workbook.exists():
        parser.error(f"File not found: {args.workbook}")

    try:
        validation, result = score_workbook(args.workbook, args.guide)
    except SpreadsheetImportError as exc:
        print(f"[score-workbook] {exc.user_message}", file=sys.stderr)
        return 2

    print_validation(validation)
    if result is None:
        print("[score-workbook] No usable responses in the workbook.", file=sys.stderr)
        return 1

    if args.output and args.output.suffix.lower() == ".xlsx":
        args.output.write_bytes(make_xlsx_export_bytes(result, args.lang))
    else:
        payload = make_json_export_payload(result, language=args.lang)
        if args.output:
            args.output.write_text(payload, encoding="utf-8")
        else:
            print(payload)
    return 0


if __name__ == "__main__":
    sys.exit(main())
