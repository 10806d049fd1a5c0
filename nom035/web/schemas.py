from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from nom035.domain.models import Assessment, NOM35Result
from nom035.domain.schemas import (
    ConditionalAnswerInput,
    ImportMetadataRecord,
    ImportValidation,
    ResponseInput,
)
from nom035.domain.services import get_recommendations


class GuideSummary(BaseModel):
    guide_type: str
    title: str
    description: str
    company_size: str
    total_questions: int
    category_count: int


class GuideQuestion(BaseModel):
    number: int
    text: str
    response_type: Literal["likert", "yesno"]
    trigger: str | None = None
    depends_on: str | None = None
    show_if: str | None = None


class GuideCategory(BaseModel):
    index: int
    id: str
    name: str
    description: str
    questions: list[GuideQuestion]


class GuideDetail(GuideSummary):
    categories: list[GuideCategory]


class RiskLevelOut(BaseModel):
    level: str
    level_en: str
    color: str
    description_es: str
    description_en: str


class CategoryRiskOut(BaseModel):
    category_id: str
    category_name_es: str
    category_name_en: str
    score: int
    max_score: int
    risk_level: RiskLevelOut


class ReportOut(BaseModel):
    guide_type: str
    overall_score: int
    overall_risk: RiskLevelOut
    category_risks: list[CategoryRiskOut]
    total_questions: int
    answered_questions: int
    completion_date: datetime
    recommendations: list[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: NOM35Result, language: str = "es") -> ReportOut:
        def level(r) -> RiskLevelOut:
            return RiskLevelOut(
                level=r.level,
                level_en=r.level_en,
                color=r.color,
                description_es=r.description_es,
                description_en=r.description_en,
            )

        return cls(
            guide_type=result.guide_type.value,
            overall_score=result.overall_score,
            overall_risk=level(result.overall_risk),
            category_risks=[
                CategoryRiskOut(
                    category_id=c.category_id,
                    category_name_es=c.category_name_es,
                    category_name_en=c.category_name_en,
                    score=c.score,
                    max_score=c.max_score,
                    risk_level=level(c.risk_level),
                )
                for c in result.category_risks
            ],
            total_questions=result.total_questions,
            answered_questions=result.answered_questions,
            completion_date=result.completion_date,
            recommendations=get_recommendations(result.overall_risk.tier, language),
        )


class RecommendationsOut(BaseModel):
    level: str
    level_en: str
    language: str
    recommendations: list[str]


class AssessmentOut(BaseModel):
    id: str
    guide_type: str
    status: str
    responses: dict[int, str] = Field(default_factory=dict)
    conditional_answers: dict[str, str] = Field(default_factory=dict)
    answered_questions: int
    unanswered_questions: list[int] = Field(default_factory=list)
    current_category_index: int
    completed_categories: list[int] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None
    import_metadata: ImportMetadataRecord | None = None

    @classmethod
    def from_domain(cls, assessment: Assessment, unanswered: list[int] | None = None) -> AssessmentOut:
        meta = assessment.import_metadata
        return cls(
            id=assessment.id,
            guide_type=assessment.guide_type.value,
            status=assessment.status.value,
            responses={r.question_number: r.label for r in assessment.responses},
            conditional_answers=assessment.conditional_answers.as_dict(),
            answered_questions=len(assessment.responses.answered_numbers()),
            unanswered_questions=unanswered or [],
            current_category_index=assessment.current_category_index,
            completed_categories=sorted(assessment.completed_categories),
            started_at=assessment.started_at,
            completed_at=assessment.completed_at,
            import_metadata=(
                ImportMetadataRecord(
                    file_name=meta.file_name,
                    file_size=meta.file_size,
                    uploaded_at=meta.uploaded_at,
                    guide_type=meta.guide_type,
                    source=meta.source,
                )
                if meta
                else None
            ),
        )


class ResponseUpdateRequest(BaseModel):
    responses: list[ResponseInput] = Field(default_factory=list)
    conditional_answers: list[ConditionalAnswerInput] = Field(default_factory=list)
    completed_categories: list[int] = Field(default_factory=list)
    current_category_index: int | None = Field(None, ge=0)


class CompleteRequest(BaseModel):
    allow_incomplete: bool = False


class ImportResponse(BaseModel):
    status: Literal["ok", "partial", "error"]
    message: str
    validation: ImportValidation | None = None
    metadata: ImportMetadataRecord | None = None
    applied: int = 0
    has_usable_responses: bool = False
    details: Any = None


class DashboardData(BaseModel):
    total_completed: int
    by_guide: dict[str, dict[str, Any]] = Field(default_factory=dict)
