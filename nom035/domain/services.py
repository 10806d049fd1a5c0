from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from ..infrastructure.logging import get_logger, log_operation
from .mapping import CategoryMapping, Thresholds, get_category_mapping
from .models import (
    CategoryRisk,
    GuideType,
    NOM35Result,
    Response,
    ResponseType,
    RiskLevel,
    RiskTier,
)

logger = get_logger(__name__)

# Positively phrased items: a frequent answer means low risk, so the ordinal is inverted.
REVERSE_QUESTIONS: dict[GuideType, frozenset[int]] = {
    GuideType.I: frozenset(),
    GuideType.II: frozenset(range(18, 34)),
    GuideType.III: frozenset({1, 4, 23, 24, 25, 26, 27, 28, *range(30, 58)}),
}

# score >= breakpoint -> tier, most severe first
OVERALL_BREAKPOINTS: dict[GuideType, tuple[tuple[int, RiskTier], ...]] = {
    GuideType.I: ((5, RiskTier.ALTO), (3, RiskTier.MEDIO)),
    GuideType.II: (
        (90, RiskTier.MUY_ALTO),
        (75, RiskTier.ALTO),
        (50, RiskTier.MEDIO),
        (20, RiskTier.BAJO),
    ),
    GuideType.III: (
        (130, RiskTier.MUY_ALTO),
        (100, RiskTier.ALTO),
        (70, RiskTier.MEDIO),
        (25, RiskTier.BAJO),
    ),
}

RISK_LEVELS: dict[RiskTier, RiskLevel] = {
    RiskTier.MUY_ALTO: RiskLevel(
        RiskTier.MUY_ALTO,
        "#dc2626",
        "Requiere intervención inmediata y medidas correctivas urgentes",
        "Requires immediate intervention and urgent corrective measures",
    ),
    RiskTier.ALTO: RiskLevel(
        RiskTier.ALTO,
        "#ea580c",
        "Requiere intervención a corto plazo y medidas correctivas",
        "Requires short-term intervention and corrective measures",
    ),
    RiskTier.MEDIO: RiskLevel(
        RiskTier.MEDIO,
        "#eab308",
        "Requiere intervención a mediano plazo y medidas preventivas",
        "Requires medium-term intervention and preventive measures",
    ),
    RiskTier.BAJO: RiskLevel(
        RiskTier.BAJO,
        "#3b82f6",
        "Requiere medidas de prevención y seguimiento periódico",
        "Requires prevention measures and periodic monitoring",
    ),
    RiskTier.NULO: RiskLevel(
        RiskTier.NULO,
        "#10b981",
        "El riesgo resulta despreciable, no requiere medidas adicionales",
        "Risk is negligible, no additional measures required",
    ),
}

# Guide I screens for post-traumatic symptoms; its overall tiers read clinically.
GUIDE_I_OVERALL_LEVELS: dict[RiskTier, RiskLevel] = {
    RiskTier.ALTO: RiskLevel(
        RiskTier.ALTO,
        "#ea580c",
        "Se requiere atención psicológica especializada urgente",
        "Urgent specialized psychological care required",
    ),
    RiskTier.MEDIO: RiskLevel(
        RiskTier.MEDIO,
        "#eab308",
        "Se recomienda evaluación y seguimiento psicológico",
        "Psychological evaluation and follow-up recommended",
    ),
    RiskTier.NULO: RiskLevel(
        RiskTier.NULO,
        "#10b981",
        "No se identifican síntomas significativos",
        "No significant symptoms identified",
    ),
}

RECOMMENDATIONS: dict[RiskTier, dict[str, tuple[str, ...]]] = {
    RiskTier.MUY_ALTO: {
        "es": (
            "Implementar acciones correctivas inmediatas",
            "Realizar evaluaciones individuales del personal",
            "Desarrollar programas de intervención especializados",
            "Establecer comités de seguimiento continuo",
            "Consultar con expertos en salud ocupacional",
        ),
        "en": (
            "Implement immediate corrective actions",
            "Conduct individual staff evaluations",
            "Develop specialized intervention programs",
            "Establish continuous follow-up committees",
            "Consult occupational health experts",
        ),
    },
    RiskTier.ALTO: {
        "es": (
            "Implementar medidas preventivas y correctivas a corto plazo",
            "Realizar capacitación en manejo de estrés",
            "Establecer canales de comunicación efectivos",
            "Revisar cargas de trabajo y distribución de tareas",
        ),
        "en": (
            "Implement short-term preventive and corrective measures",
            "Provide stress management training",
            "Establish effective communication channels",
            "Review workloads and task distribution",
        ),
    },
    RiskTier.MEDIO: {
        "es": (
            "Implementar acciones preventivas a mediano plazo",
            "Promover actividades de integración del equipo",
            "Establecer programas de reconocimiento",
            "Realizar evaluaciones periódicas del clima laboral",
        ),
        "en": (
            "Implement medium-term preventive actions",
            "Promote team integration activities",
            "Establish recognition programs",
            "Conduct periodic workplace climate evaluations",
        ),
    },
    RiskTier.BAJO: {
        "es": (
            "Mantener las condiciones actuales",
            "Realizar seguimiento periódico",
            "Promover la comunicación abierta",
            "Fomentar el equilibrio vida-trabajo",
        ),
        "en": (
            "Maintain current conditions",
            "Carry out periodic follow-up",
            "Promote open communication",
            "Encourage work-life balance",
        ),
    },
    RiskTier.NULO: {
        "es": (
            "Mantener las buenas prácticas actuales",
            "Realizar evaluaciones anuales de seguimiento",
            "Continuar fomentando un ambiente laboral saludable",
        ),
        "en": (
            "Maintain current good practices",
            "Conduct annual follow-up evaluations",
            "Keep fostering a healthy work environment",
        ),
    },
}


def is_reverse_scored(question_number: int, guide_type: GuideType | str) -> bool:
    return question_number in REVERSE_QUESTIONS[GuideType(guide_type)]


def score_question(
    response: Response,
    guide_type: GuideType | str,
    expected_type: ResponseType | None = None,
) -> int:
    """
    Score one response on the 0-4 scale.

    Unrecognised labels, and answers of the wrong type when ``expected_type``
    is given, score 0. Reverse-scored questions return ``4 - ordinal``.
    """
    answer = response.answer
    if answer is None:
        return 0
    if expected_type is not None and answer.response_type is not expected_type:
        return 0
    score = answer.ordinal
    if is_reverse_scored(response.question_number, guide_type):
        score = 4 - score
    return score


def _index(responses: Iterable[Response]) -> dict[int, Response]:
    # last write wins, matching ResponseStore
    return {r.question_number: r for r in responses}


def score_category(
    category: CategoryMapping,
    responses: Iterable[Response] | dict[int, Response],
    guide_type: GuideType | str,
) -> int:
    by_number = responses if isinstance(responses, dict) else _index(responses)
    total = 0
    for number in category.questions:
        response = by_number.get(number)
        if response is not None:
            total += score_question(response, guide_type, category.response_type)
    return total


def classify_category_risk(score: int, thresholds: Thresholds) -> RiskLevel:
    """Descending scan; a score equal to a boundary belongs to the higher tier."""
    if score >= thresholds.muy_alto:
        return RISK_LEVELS[RiskTier.MUY_ALTO]
    if score >= thresholds.alto:
        return RISK_LEVELS[RiskTier.ALTO]
    if score >= thresholds.medio:
        return RISK_LEVELS[RiskTier.MEDIO]
    if score >= thresholds.bajo:
        return RISK_LEVELS[RiskTier.BAJO]
    return RISK_LEVELS[RiskTier.NULO]


def classify_overall_risk(score: int, guide_type: GuideType | str) -> RiskLevel:
    guide_type = GuideType(guide_type)
    levels = GUIDE_I_OVERALL_LEVELS if guide_type is GuideType.I else RISK_LEVELS
    for breakpoint, tier in OVERALL_BREAKPOINTS[guide_type]:
        if score >= breakpoint:
            return levels[tier]
    return levels[RiskTier.NULO]


@log_operation("generate_report")
def generate_report(
    guide_type: GuideType | str,
    responses: Iterable[Response],
    total_questions: int,
) -> NOM35Result:
    """
    Build the NOM-035 result for one set of responses.

    Pure apart from ``completion_date``: missing or malformed responses
    score 0 instead of raising, so a report is always produced and
    completeness shows up in ``answered_questions`` / ``total_questions``.
    """
    guide_type = GuideType(guide_type)
    mapping = get_category_mapping(guide_type)
    by_number = _index(responses)

    category_risks: list[CategoryRisk] = []
    for category in mapping.categories:
        score = score_category(category, by_number, guide_type)
        category_risks.append(
            CategoryRisk(
                category_id=category.category_id,
                category_name_es=category.category_name_es,
                category_name_en=category.category_name_en,
                score=score,
                max_score=category.max_score,
                risk_level=classify_category_risk(score, category.thresholds),
            )
        )

    overall_score = sum(c.score for c in category_risks)
    answered = sum(1 for n in by_number if n > 0)
    overall_risk = classify_overall_risk(overall_score, guide_type)

    logger.debug(
        f"Guide {guide_type.value} report: score={overall_score} risk={overall_risk.level} "
        f"answered={answered}/{total_questions}"
    )
    return NOM35Result(
        guide_type=guide_type,
        overall_risk=overall_risk,
        overall_score=overall_score,
        category_risks=tuple(category_risks),
        total_questions=total_questions,
        answered_questions=answered,
        completion_date=datetime.now(UTC),
    )


def get_recommendations(tier: RiskTier | str, language: str = "es") -> list[str]:
    if isinstance(tier, str):
        tier = RiskTier.from_label(tier)
    tier = RiskTier(tier)
    lang = "en" if language == "en" else "es"
    return list(RECOMMENDATIONS[tier][lang])
