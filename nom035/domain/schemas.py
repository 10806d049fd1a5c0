"""
Pydantic schemas for input validation, import results and persisted records.

Import results mirror what the upload dialog needs to show: accepted and
rejected rows, row-level errors and warnings, and the questions still
unanswered. ``AssessmentRecord`` is the JSON shape drafts and history
entries are stored in.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models import (
    ANSWER_LABELS,
    Answer,
    Assessment,
    AssessmentStatus,
    ConditionalAnswers,
    GuideType,
    ImportMetadata,
    ImportSource,
    Response,
    ResponseStore,
    Trigger,
)


class BaseValidationSchema(BaseModel):
    """Base schema that normalises incoming strings."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_assignment=True)

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v):
        """Drop control characters that spreadsheets and forms sometimes carry."""
        if isinstance(v, str):
            return re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]", "", v.strip())
        return v


# ---------- Import ----------


class ImportedResponse(BaseModel):
    row: int
    question_number: int
    answer: str
    notes: str | None = None


class ImportRowError(BaseModel):
    row: int
    question_number: int
    message: str
    value: str | None = None


class ImportRowWarning(BaseModel):
    row: int
    question_number: int
    message: str
    suggestion: str | None = None


class ImportValidation(BaseModel):
    guide_type: GuideType
    is_valid: bool
    errors: list[ImportRowError] = Field(default_factory=list)
    warnings: list[ImportRowWarning] = Field(default_factory=list)
    valid_responses: list[ImportedResponse] = Field(default_factory=list)
    invalid_responses: list[ImportedResponse] = Field(default_factory=list)
    missing_questions: list[int] = Field(default_factory=list)
    total_questions: int
    answered_questions: int

    @property
    def has_usable_responses(self) -> bool:
        """Looser than ``is_valid``: at least one row can be applied."""
        return bool(self.valid_responses)

    @property
    def answered_question_numbers(self) -> set[int]:
        return {r.question_number for r in self.valid_responses}


# ---------- Inputs ----------


class ResponseInput(BaseValidationSchema):
    question_number: int = Field(..., ge=0)
    answer: str = Field(..., min_length=1)

    @field_validator("answer")
    def validate_answer_label(cls, v):
        if v not in ANSWER_LABELS:
            raise ValueError(f"answer must be one of {', '.join(ANSWER_LABELS)}")
        return v


class ReportRequest(BaseValidationSchema):
    guide_type: GuideType
    responses: list[ResponseInput] = Field(default_factory=list)
    total_questions: int | None = Field(None, gt=0)


class StartAssessmentInput(BaseValidationSchema):
    guide_type: GuideType


class ConditionalAnswerInput(BaseValidationSchema):
    trigger: Trigger
    answer: str

    @field_validator("answer")
    def validate_yes_no(cls, v):
        if v not in (Answer.SI.label, Answer.NO.label):
            raise ValueError("trigger answers must be 'Sí' or 'No'")
        return v


# ---------- Persisted records ----------


class ResponseRecord(BaseModel):
    question_number: int
    answer: str


class ImportMetadataRecord(BaseModel):
    file_name: str
    file_size: int
    uploaded_at: datetime
    guide_type: GuideType
    source: ImportSource = ImportSource.UPLOAD


class AssessmentRecord(BaseModel):
    id: str
    guide_type: GuideType
    responses: list[ResponseRecord] = Field(default_factory=list)
    conditional_answers: dict[Trigger, str] = Field(default_factory=dict)
    completed_categories: list[int] = Field(default_factory=list)
    current_category_index: int = 0
    started_at: datetime
    completed_at: datetime | None = None
    status: AssessmentStatus = AssessmentStatus.DRAFT
    import_metadata: ImportMetadataRecord | None = None

    @classmethod
    def from_domain(cls, assessment: Assessment) -> AssessmentRecord:
        meta = assessment.import_metadata
        return cls(
            id=assessment.id,
            guide_type=assessment.guide_type,
            responses=[
                ResponseRecord(question_number=r.question_number, answer=r.label)
                for r in assessment.responses
            ],
            conditional_answers=assessment.conditional_answers.as_dict(),
            completed_categories=sorted(assessment.completed_categories),
            current_category_index=assessment.current_category_index,
            started_at=assessment.started_at,
            completed_at=assessment.completed_at,
            status=assessment.status,
            import_metadata=(
                ImportMetadataRecord(
                    file_name=meta.file_name,
                    file_size=meta.file_size,
                    uploaded_at=meta.uploaded_at,
                    guide_type=meta.guide_type,
                    source=meta.source,
                )
                if meta is not None
                else None
            ),
        )

    def to_domain(self) -> Assessment:
        conditional = ConditionalAnswers()
        for trigger, label in self.conditional_answers.items():
            answer = Answer.from_label(label)
            if answer is not None:
                conditional.set(trigger, answer)
        meta = self.import_metadata
        return Assessment(
            guide_type=self.guide_type,
            id=self.id,
            responses=ResponseStore(Response.of(r.question_number, r.answer) for r in self.responses),
            conditional_answers=conditional,
            completed_categories=set(self.completed_categories),
            current_category_index=self.current_category_index,
            started_at=_aware(self.started_at),
            completed_at=_aware(self.completed_at) if self.completed_at else None,
            status=self.status,
            import_metadata=(
                ImportMetadata(
                    file_name=meta.file_name,
                    file_size=meta.file_size,
                    uploaded_at=_aware(meta.uploaded_at),
                    guide_type=meta.guide_type,
                    source=meta.source,
                )
                if meta is not None
                else None
            ),
        )


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


# ---------- Generic validation envelope ----------


class ValidationErrorDetail(BaseModel):
    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Validate ``data`` against ``schema_class`` and return a structured result.

    Example:
        >>> result = validate_input(ResponseInput, {"question_number": 3, "answer": "Nunca"})
        >>> result.success
        True
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):
            for error in e.errors():
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]),
                        message=error["msg"],
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
