"""
Application API layer used by the web routes and the CLI scripts.

Wraps the pure domain functions with input validation, logging context and
translation of unexpected failures into ``NOM035Error`` subclasses.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from ..domain.catalog import get_guide, list_guides
from ..domain.imports import validate_imported_data
from ..domain.models import (
    Assessment,
    GuideType,
    ImportMetadata,
    ImportSource,
    NOM35Result,
    Response,
)
from ..domain.schemas import ImportValidation, ReportRequest, ResponseInput, validate_input
from ..domain.services import generate_report
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import (
    MultipleValidationError,
    NOM035Error,
    ValidationError,
    log_error_details,
)
from ..infrastructure.logging import LogContext, get_logger, log_operation
from ..utils.spreadsheets import parse_spreadsheet
from .session import AssessmentHistory

logger = get_logger(__name__)


def guide_summary(guide_type: GuideType | str, language: str = "es") -> dict[str, Any]:
    guide = get_guide(guide_type)
    en = language == "en"
    return {
        "guide_type": guide.guide_type.value,
        "title": guide.title(language),
        "description": guide.description_en if en else guide.description_es,
        "company_size": guide.company_size_en if en else guide.company_size_es,
        "total_questions": guide.total_questions,
        "category_count": len(guide.categories),
    }


def list_guide_summaries(language: str = "es") -> list[dict[str, Any]]:
    return [guide_summary(g.guide_type, language) for g in list_guides()]


def describe_guide(guide_type: GuideType | str, language: str = "es") -> dict[str, Any]:
    """Guide summary plus every category and question, for rendering the form."""
    guide = get_guide(guide_type)
    en = language == "en"
    data = guide_summary(guide_type, language)
    data["categories"] = [
        {
            "index": index,
            "id": category.id,
            "name": category.name(language),
            "description": category.description_en if en else category.description_es,
            "questions": [
                {
                    "number": q.number,
                    "text": q.text(language),
                    "response_type": q.response_type.value,
                    "trigger": q.trigger.value if q.trigger else None,
                    "depends_on": q.conditional.trigger.value if q.conditional else None,
                    "show_if": q.conditional.show_if.label if q.conditional else None,
                }
                for q in category.questions
            ],
        }
        for index, category in enumerate(guide.categories)
    ]
    return data


@log_operation("score_responses")
def score_responses(
    guide_type: GuideType | str,
    responses: Iterable[ResponseInput | dict[str, Any]],
    total_questions: int | None = None,
) -> NOM35Result:
    """
    Validate raw (question number, answer) pairs and build a report.

    Raises:
        MultipleValidationError: a response fails schema validation

    Example:
        >>> result = score_responses("I", [{"question_number": 1, "answer": "Sí"}])
        >>> result.overall_score
        1
    """
    errors: list[ValidationError] = []
    parsed: list[Response] = []
    for index, item in enumerate(responses):
        if isinstance(item, ResponseInput):
            parsed.append(Response.of(item.question_number, item.answer))
            continue
        check = validate_input(ResponseInput, dict(item))
        if not check.success:
            for detail in check.errors:
                errors.append(
                    ValidationError(f"responses[{index}].{detail.field}", detail.message, detail.value)
                )
            continue
        parsed.append(Response.of(check.data["question_number"], check.data["answer"]))

    if errors:
        raise MultipleValidationError(errors)

    guide = get_guide(guide_type)
    with LogContext(guide_type=guide.guide_type.value):
        return generate_report(guide.guide_type, parsed, total_questions or guide.total_questions)


def score_request(request: ReportRequest) -> NOM35Result:
    return score_responses(request.guide_type, request.responses, request.total_questions)


async def import_workbook(
    content: bytes, filename: str, guide_type: GuideType | str
) -> tuple[ImportValidation, ImportMetadata]:
    """
    Decode an uploaded workbook and validate its rows for one guide.

    Decode failures raise; row problems are reported on the returned
    validation instead.
    """
    guide_type = GuideType(guide_type)
    config = get_settings().imports
    rows = await parse_spreadsheet(content, filename, config)
    validation = validate_imported_data(
        rows,
        guide_type,
        first_row=config.header_rows + 1,
        suggestion_max_distance=config.suggestion_max_distance,
    )
    metadata = ImportMetadata(
        file_name=filename,
        file_size=len(content),
        uploaded_at=datetime.now(UTC),
        guide_type=guide_type,
        source=ImportSource.UPLOAD,
    )
    if not validation.has_usable_responses:
        logger.warning(f"{filename} contains no usable responses")
    return validation, metadata


def report_for(assessment: Assessment) -> NOM35Result:
    guide = get_guide(assessment.guide_type)
    return generate_report(assessment.guide_type, assessment.responses.to_list(), guide.total_questions)


@log_operation("dashboard_summary")
def dashboard_summary(history: AssessmentHistory) -> dict[str, Any]:
    """
    Counts and the latest result per guide over the completed history.

    Example:
        >>> summary = dashboard_summary(AssessmentHistory(storage))
        >>> summary["total_completed"]
        0
    """
    try:
        assessments = history.list()
        by_guide: dict[str, dict[str, Any]] = {}
        for assessment in assessments:
            entry = by_guide.setdefault(
                assessment.guide_type.value, {"count": 0, "latest": None, "_latest_at": None}
            )
            entry["count"] += 1
            completed_at = assessment.completed_at or assessment.started_at
            if entry["_latest_at"] is None or completed_at >= entry["_latest_at"]:
                result = report_for(assessment)
                entry["_latest_at"] = completed_at
                entry["latest"] = {
                    "assessment_id": assessment.id,
                    "completed_at": completed_at.isoformat(),
                    "overall_score": result.overall_score,
                    "overall_risk": result.overall_risk.level,
                    "overall_risk_en": result.overall_risk.level_en,
                    "color": result.overall_risk.color,
                }
        for entry in by_guide.values():
            entry.pop("_latest_at")

        summary = {"total_completed": len(assessments), "by_guide": by_guide}
        logger.info(f"Dashboard summary over {len(assessments)} completed assessments")
        return summary

    except Exception as e:
        error_details = log_error_details(e)
        logger.error("Failed to build dashboard summary", extra=error_details)

        if isinstance(e, NOM035Error):
            raise

        raise NOM035Error(
            f"Failed to build dashboard summary: {str(e)}",
            details=error_details,
            user_message="Unable to load the dashboard. Please try again.",
        ) from e


__all__ = [
    "dashboard_summary",
    "describe_guide",
    "guide_summary",
    "import_workbook",
    "list_guide_summaries",
    "report_for",
    "score_request",
    "score_responses",
]
