from __future__ import annotations

import io
import json
from typing import Literal

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse, StreamingResponse

from nom035.application import api as app_api
from nom035.application.session import AssessmentHistory, AssessmentSession
from nom035.domain.catalog import get_guide
from nom035.domain.models import Assessment, GuideType, RiskTier
from nom035.domain.schemas import ImportMetadataRecord, ReportRequest, StartAssessmentInput
from nom035.domain.services import get_recommendations
from nom035.infrastructure.exceptions import (
    AssessmentNotFoundError,
    AssessmentStateError,
    FileTooLargeError,
    IncompleteAssessmentError,
    MultipleValidationError,
    NOM035Error,
    SpreadsheetImportError,
    UnsupportedFileTypeError,
    ValidationError,
)
from nom035.infrastructure.logging import get_logger
from nom035.utils.exports import make_json_export_payload, make_xlsx_export_bytes
from nom035.utils.spreadsheets import XLSX_MEDIA_TYPE, build_template_workbook
from nom035.web.dependencies import get_assessment_session, get_history
from nom035.web.schemas import (
    AssessmentOut,
    CompleteRequest,
    DashboardData,
    GuideDetail,
    GuideSummary,
    ImportResponse,
    RecommendationsOut,
    ReportOut,
    ResponseUpdateRequest,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

Language = Literal["es", "en"]


def _xlsx_response(content: bytes, filename: str) -> StreamingResponse:
    stream = io.BytesIO(content)
    stream.seek(0)
    headers = {"Content-Disposition": f"attachment; filename={filename}"}
    return StreamingResponse(stream, media_type=XLSX_MEDIA_TYPE, headers=headers)


def _current_out(session: AssessmentSession) -> AssessmentOut:
    assessment = session.assessment
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No assessment in progress")
    return AssessmentOut.from_domain(assessment, session.unanswered_questions())


def _completed(history: AssessmentHistory, assessment_id: str) -> Assessment:
    assessment = history.get(assessment_id)
    if assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assessment not found")
    return assessment


@router.get("/health")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


# ---------- Guides ----------


@router.get("/guides", response_model=list[GuideSummary])
def list_guides(lang: Language = "es") -> list[GuideSummary]:
    return [GuideSummary(**item) for item in app_api.list_guide_summaries(lang)]


@router.get("/guides/{guide_type}", response_model=GuideDetail)
def get_guide_detail(guide_type: GuideType, lang: Language = "es") -> GuideDetail:
    return GuideDetail(**app_api.describe_guide(guide_type, lang))


@router.get("/guides/{guide_type}/template.xlsx")
def download_template(guide_type: GuideType, lang: Language = "es") -> StreamingResponse:
    content = build_template_workbook(get_guide(guide_type), lang)
    return _xlsx_response(content, f"nom035_guia_{guide_type.value}.xlsx")


# ---------- Scoring ----------


@router.post("/reports", response_model=ReportOut)
def create_report(payload: ReportRequest, lang: Language = "es") -> ReportOut:
    try:
        result = app_api.score_request(payload)
    except MultipleValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.details
        ) from exc
    return ReportOut.from_result(result, lang)


@router.get("/recommendations/{level}", response_model=RecommendationsOut)
def recommendations(level: str, lang: Language = "es") -> RecommendationsOut:
    try:
        tier = RiskTier.from_label(level)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return RecommendationsOut(
        level=tier.label_es,
        level_en=tier.label_en,
        language=lang,
        recommendations=get_recommendations(tier, lang),
    )


# ---------- Imports ----------


@router.post("/imports/{guide_type}", response_model=ImportResponse)
async def import_responses(
    guide_type: GuideType,
    file: UploadFile = File(...),
    apply: bool = Query(False, description="Load the valid rows into the current draft"),
    session: AssessmentSession = Depends(get_assessment_session),
) -> ImportResponse:
    content = await file.read()
    filename = file.filename or "upload.xlsx"

    try:
        validation, metadata = await app_api.import_workbook(content, filename, guide_type)
    except UnsupportedFileTypeError as exc:
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail=exc.user_message
        ) from exc
    except FileTooLargeError as exc:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=exc.user_message
        ) from exc
    except SpreadsheetImportError as exc:
        return ImportResponse(status="error", message=exc.user_message, details=exc.details)

    applied = 0
    if apply and validation.has_usable_responses:
        try:
            applied = session.apply_import(validation, metadata)
        except (ValidationError, AssessmentStateError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.user_message) from exc

    if validation.is_valid:
        result_status, message = "ok", f"{len(validation.valid_responses)} responses are valid."
    elif validation.has_usable_responses:
        result_status = "partial"
        message = (
            f"{len(validation.valid_responses)} valid responses, "
            f"{len(validation.errors)} rows with errors."
        )
    else:
        result_status, message = "error", "No usable responses were found in the file."
    logger.info(f"Import of {filename} for Guide {guide_type.value}: {result_status}, {applied} applied")

    return ImportResponse(
        status=result_status,
        message=message,
        validation=validation,
        metadata=ImportMetadataRecord(
            file_name=metadata.file_name,
            file_size=metadata.file_size,
            uploaded_at=metadata.uploaded_at,
            guide_type=metadata.guide_type,
            source=metadata.source,
        ),
        applied=applied,
        has_usable_responses=validation.has_usable_responses,
    )


# ---------- Assessments ----------


@router.get("/dashboard", response_model=DashboardData)
def dashboard(history: AssessmentHistory = Depends(get_history)) -> DashboardData:
    try:
        return DashboardData(**app_api.dashboard_summary(history))
    except NOM035Error as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.user_message) from exc


@router.get("/assessments", response_model=list[AssessmentOut])
def list_assessments(history: AssessmentHistory = Depends(get_history)) -> list[AssessmentOut]:
    return [AssessmentOut.from_domain(a) for a in history.list()]


@router.post("/assessments", response_model=AssessmentOut, status_code=status.HTTP_201_CREATED)
def start_assessment(
    payload: StartAssessmentInput,
    session: AssessmentSession = Depends(get_assessment_session),
) -> AssessmentOut:
    session.start(payload.guide_type)
    return _current_out(session)


@router.get("/assessments/current", response_model=AssessmentOut)
def get_current_assessment(
    session: AssessmentSession = Depends(get_assessment_session),
) -> AssessmentOut:
    return _current_out(session)


@router.delete("/assessments/current", status_code=status.HTTP_204_NO_CONTENT)
def clear_current_assessment(session: AssessmentSession = Depends(get_assessment_session)) -> None:
    session.clear()


@router.put("/assessments/current/responses", response_model=AssessmentOut)
def update_responses(
    payload: ResponseUpdateRequest,
    session: AssessmentSession = Depends(get_assessment_session),
) -> AssessmentOut:
    """Apply the whole batch or, when any item is rejected, none of it."""
    if session.assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No assessment in progress")
    try:
        with session.batch():
            for item in payload.conditional_answers:
                session.set_conditional_answer(item.trigger, item.answer)
            for item in payload.responses:
                if item.question_number == 0:
                    continue
                session.record_response(item.question_number, item.answer)
            for index in payload.completed_categories:
                session.mark_category_completed(index)
            if payload.current_category_index is not None:
                session.go_to_category(payload.current_category_index)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.user_message
        ) from exc
    except AssessmentStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.user_message) from exc
    return _current_out(session)


@router.post("/assessments/current/complete", response_model=ReportOut)
def complete_assessment(
    payload: CompleteRequest,
    lang: Language = "es",
    session: AssessmentSession = Depends(get_assessment_session),
) -> ReportOut | JSONResponse:
    if session.assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No assessment in progress")
    try:
        result = session.complete(allow_incomplete=payload.allow_incomplete)
    except IncompleteAssessmentError as exc:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={
                "detail": exc.user_message,
                "missing_questions": exc.missing_questions,
            },
        )
    except AssessmentStateError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.user_message) from exc
    return ReportOut.from_result(result, lang)


@router.get("/assessments/current/report", response_model=ReportOut)
def current_report(
    lang: Language = "es",
    session: AssessmentSession = Depends(get_assessment_session),
) -> ReportOut:
    if session.assessment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No assessment in progress")
    return ReportOut.from_result(session.report(), lang)


@router.post("/assessments/{assessment_id}/load", response_model=AssessmentOut)
def load_completed_assessment(
    assessment_id: str,
    session: AssessmentSession = Depends(get_assessment_session),
) -> AssessmentOut:
    try:
        session.load_assessment(assessment_id)
    except AssessmentNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.user_message) from exc
    return _current_out(session)


@router.get("/assessments/{assessment_id}/report", response_model=ReportOut)
def assessment_report(
    assessment_id: str,
    lang: Language = "es",
    history: AssessmentHistory = Depends(get_history),
) -> ReportOut:
    assessment = _completed(history, assessment_id)
    return ReportOut.from_result(app_api.report_for(assessment), lang)


@router.get("/assessments/{assessment_id}/exports/json")
def export_assessment_json(
    assessment_id: str,
    lang: Language = "es",
    history: AssessmentHistory = Depends(get_history),
) -> JSONResponse:
    assessment = _completed(history, assessment_id)
    payload = make_json_export_payload(app_api.report_for(assessment), assessment.id, lang)
    return JSONResponse(content=json.loads(payload))


@router.get("/assessments/{assessment_id}/exports/xlsx")
def export_assessment_xlsx(
    assessment_id: str,
    lang: Language = "es",
    history: AssessmentHistory = Depends(get_history),
) -> StreamingResponse:
    assessment = _completed(history, assessment_id)
    content = make_xlsx_export_bytes(app_api.report_for(assessment), lang)
    return _xlsx_response(content, f"nom035_{assessment.id}.xlsx")
