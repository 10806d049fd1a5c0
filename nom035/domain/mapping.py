"""
Category mapping table: question membership, maximum score and the five
risk thresholds for every category of every guide.

The membership lists must stay in lockstep with the guide catalog; see
``verify_guide_mapping``.
"""

from __future__ import annotations

from dataclasses import dataclass

from .models import GuideType, ResponseType

TOTAL_QUESTIONS_BY_GUIDE: dict[GuideType, int] = {
    GuideType.I: 15,
    GuideType.II: 46,
    GuideType.III: 72,
}


@dataclass(slots=True, frozen=True)
class Thresholds:
    nulo: int
    bajo: int
    medio: int
    alto: int
    muy_alto: int

    def as_tuple(self) -> tuple[int, int, int, int, int]:
        return (self.nulo, self.bajo, self.medio, self.alto, self.muy_alto)


@dataclass(slots=True, frozen=True)
class CategoryMapping:
    category_id: str
    category_name_es: str
    category_name_en: str
    questions: tuple[int, ...]
    max_score: int
    thresholds: Thresholds
    response_type: ResponseType = ResponseType.LIKERT


@dataclass(slots=True, frozen=True)
class GuideMapping:
    guide: GuideType
    categories: tuple[CategoryMapping, ...]

    def category(self, category_id: str) -> CategoryMapping | None:
        for category in self.categories:
            if category.category_id == category_id:
                return category
        return None

    def category_for_question(self, question_number: int) -> CategoryMapping | None:
        for category in self.categories:
            if question_number in category.questions:
                return category
        return None


def _span(first: int, last: int) -> tuple[int, ...]:
    return tuple(range(first, last + 1))


GUIDE_I_MAPPING = GuideMapping(
    guide=GuideType.I,
    categories=(
        CategoryMapping(
            category_id="traumatic-events",
            category_name_es="Acontecimientos Traumáticos Severos",
            category_name_en="Severe Traumatic Events",
            questions=_span(1, 3),
            max_score=3,
            thresholds=Thresholds(nulo=0, bajo=0, medio=0, alto=1, muy_alto=3),
            response_type=ResponseType.YES_NO,
        ),
        CategoryMapping(
            category_id="re-experiencing",
            category_name_es="Recuerdos Persistentes",
            category_name_en="Persistent Memories",
            questions=_span(4, 6),
            max_score=3,
            thresholds=Thresholds(nulo=0, bajo=0, medio=1, alto=2, muy_alto=3),
            response_type=ResponseType.YES_NO,
        ),
        CategoryMapping(
            category_id="avoidance",
            category_name_es="Esfuerzos por Evitar Circunstancias",
            category_name_en="Avoidance Efforts",
            questions=_span(7, 9),
            max_score=3,
            thresholds=Thresholds(nulo=0, bajo=0, medio=1, alto=2, muy_alto=3),
            response_type=ResponseType.YES_NO,
        ),
        CategoryMapping(
            category_id="hyperarousal",
            category_name_es="Afectación",
            category_name_en="Impact & Hyperarousal",
            questions=_span(10, 15),
            max_score=6,
            thresholds=Thresholds(nulo=0, bajo=1, medio=3, alto=5, muy_alto=6),
            response_type=ResponseType.YES_NO,
        ),
    ),
)

GUIDE_II_MAPPING = GuideMapping(
    guide=GuideType.II,
    categories=(
        CategoryMapping(
            category_id="work-environment",
            category_name_es="Ambiente de Trabajo",
            category_name_en="Work Environment",
            questions=_span(1, 4),
            max_score=16,
            thresholds=Thresholds(nulo=0, bajo=3, medio=5, alto=7, muy_alto=9),
        ),
        CategoryMapping(
            category_id="workload-time",
            category_name_es="Factores de la Tarea",
            category_name_en="Task Factors & Workload",
            questions=_span(5, 12),
            max_score=32,
            thresholds=Thresholds(nulo=0, bajo=6, medio=9, alto=12, muy_alto=16),
        ),
        CategoryMapping(
            category_id="leadership",
            category_name_es="Liderazgo y Relaciones",
            category_name_en="Leadership & Relations",
            questions=_span(13, 33),
            max_score=84,
            thresholds=Thresholds(nulo=0, bajo=10, medio=14, alto=19, muy_alto=28),
        ),
        CategoryMapping(
            category_id="organizational-control",
            category_name_es="Control sobre el Trabajo",
            category_name_en="Control over Work",
            questions=_span(34, 40),
            max_score=28,
            thresholds=Thresholds(nulo=0, bajo=5, medio=8, alto=11, muy_alto=14),
        ),
        CategoryMapping(
            category_id="violence",
            category_name_es="Violencia",
            category_name_en="Violence",
            questions=_span(41, 46),
            max_score=24,
            thresholds=Thresholds(nulo=0, bajo=3, medio=5, alto=7, muy_alto=12),
        ),
    ),
)

GUIDE_III_MAPPING = GuideMapping(
    guide=GuideType.III,
    categories=(
        CategoryMapping(
            category_id="work-conditions",
            category_name_es="Condiciones en el Ambiente de Trabajo",
            category_name_en="Work Environment Conditions",
            questions=_span(1, 8),
            max_score=32,
            thresholds=Thresholds(nulo=0, bajo=5, medio=9, alto=11, muy_alto=14),
        ),
        CategoryMapping(
            category_id="workload",
            category_name_es="Carga de Trabajo",
            category_name_en="Workload",
            questions=_span(9, 20),
            max_score=48,
            thresholds=Thresholds(nulo=0, bajo=12, medio=16, alto=20, muy_alto=24),
        ),
        CategoryMapping(
            category_id="work-pace",
            category_name_es="Falta de Control sobre el Trabajo",
            category_name_en="Lack of Control over Work",
            questions=_span(21, 30),
            max_score=40,
            thresholds=Thresholds(nulo=0, bajo=8, medio=11, alto=14, muy_alto=17),
        ),
        CategoryMapping(
            category_id="work-day",
            category_name_es="Jornada de Trabajo",
            category_name_en="Work Schedule",
            questions=_span(31, 36),
            max_score=24,
            thresholds=Thresholds(nulo=0, bajo=1, medio=2, alto=4, muy_alto=6),
        ),
        CategoryMapping(
            category_id="interference",
            category_name_es="Interferencia Trabajo-Familia",
            category_name_en="Work-Family Interference",
            questions=_span(37, 40),
            max_score=16,
            thresholds=Thresholds(nulo=0, bajo=1, medio=2, alto=4, muy_alto=6),
        ),
        CategoryMapping(
            category_id="leadership",
            category_name_es="Liderazgo",
            category_name_en="Leadership",
            questions=_span(41, 56),
            max_score=64,
            thresholds=Thresholds(nulo=0, bajo=9, medio=12, alto=16, muy_alto=20),
        ),
        CategoryMapping(
            category_id="workplace-relations",
            category_name_es="Relaciones en el Trabajo",
            category_name_en="Workplace Relations",
            questions=_span(57, 65),
            max_score=36,
            thresholds=Thresholds(nulo=0, bajo=5, medio=7, alto=10, muy_alto=13),
        ),
        CategoryMapping(
            category_id="violence",
            category_name_es="Violencia",
            category_name_en="Violence",
            questions=_span(66, 72),
            max_score=28,
            thresholds=Thresholds(nulo=0, bajo=7, medio=10, alto=13, muy_alto=16),
        ),
    ),
)

CATEGORY_MAPPINGS: dict[GuideType, GuideMapping] = {
    GuideType.I: GUIDE_I_MAPPING,
    GuideType.II: GUIDE_II_MAPPING,
    GuideType.III: GUIDE_III_MAPPING,
}


def get_category_mapping(guide_type: GuideType | str) -> GuideMapping:
    return CATEGORY_MAPPINGS[GuideType(guide_type)]


def get_total_questions(guide_type: GuideType | str) -> int:
    return TOTAL_QUESTIONS_BY_GUIDE[GuideType(guide_type)]


def max_answer_score(response_type: ResponseType) -> int:
    return 1 if response_type is ResponseType.YES_NO else 4


def verify_guide_mapping(mapping: GuideMapping) -> list[str]:
    """
    Check the table invariants for one guide and return the problems found.

    - categories partition 1..total without gaps or overlaps
    - thresholds are non-decreasing and never exceed max_score
    - max_score equals the sum of the per-question maxima
    """
    problems: list[str] = []
    total = TOTAL_QUESTIONS_BY_GUIDE[mapping.guide]

    seen: dict[int, str] = {}
    for category in mapping.categories:
        for number in category.questions:
            if number in seen:
                problems.append(
                    f"question {number} is in both '{seen[number]}' and '{category.category_id}'"
                )
            seen[number] = category.category_id

        values = category.thresholds.as_tuple() + (category.max_score,)
        if any(a > b for a, b in zip(values, values[1:])):
            problems.append(f"thresholds of '{category.category_id}' are not ascending: {values}")

        expected_max = len(category.questions) * max_answer_score(category.response_type)
        if category.max_score != expected_max:
            problems.append(
                f"max_score of '{category.category_id}' is {category.max_score}, "
                f"expected {expected_max}"
            )

    expected = set(range(1, total + 1))
    missing = sorted(expected - set(seen))
    extra = sorted(set(seen) - expected)
    if missing:
        problems.append(f"questions not mapped to any category: {missing}")
    if extra:
        problems.append(f"questions outside 1..{total}: {extra}")
    return problems
