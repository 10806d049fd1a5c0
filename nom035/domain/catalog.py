"""
Guide catalog: the three NOM-035 questionnaires as immutable reference data.

Guide definitions live as JSON under ``nom035/data``. They are validated
with pydantic on first use, converted to the frozen domain dataclasses and
cross-checked against the category mapping table, so a catalog that drifts
from the mapping fails loudly at load time instead of scoring silently wrong.
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, model_validator

from ..infrastructure.exceptions import CatalogIntegrityError
from ..infrastructure.logging import get_logger
from .mapping import get_category_mapping, verify_guide_mapping
from .models import (
    Answer,
    Category,
    ConditionalDependency,
    Guide,
    GuideType,
    Question,
    ResponseType,
    Trigger,
)

logger = get_logger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

_GUIDE_FILES: dict[GuideType, str] = {
    GuideType.I: "guide_i.json",
    GuideType.II: "guide_ii.json",
    GuideType.III: "guide_iii.json",
}


class ConditionalSpec(BaseModel):
    trigger: Trigger
    show_if: str = Answer.SI.label


class QuestionSpec(BaseModel):
    number: int = Field(..., ge=0)
    type: ResponseType
    text_es: str = Field(..., min_length=1)
    text_en: str = Field(..., min_length=1)
    conditional: ConditionalSpec | None = None
    trigger: Trigger | None = None

    @model_validator(mode="after")
    def check_trigger_shape(self):
        if self.number == 0 and self.trigger is None:
            raise ValueError("question 0 is reserved for trigger pseudo-questions")
        if self.trigger is not None:
            if self.number != 0:
                raise ValueError("trigger pseudo-questions must use number 0")
            if self.type is not ResponseType.YES_NO:
                raise ValueError("trigger pseudo-questions take yes/no answers")
        return self


class CategorySpec(BaseModel):
    id: str = Field(..., min_length=1)
    name_es: str
    name_en: str
    description_es: str = ""
    description_en: str = ""
    questions: list[QuestionSpec]


class GuideSpec(BaseModel):
    guide: GuideType
    title_es: str
    title_en: str
    description_es: str
    description_en: str
    company_size_es: str
    company_size_en: str
    categories: list[CategorySpec] = Field(..., min_length=1)


def _to_question(spec: QuestionSpec) -> Question:
    conditional = None
    if spec.conditional is not None:
        show_if = Answer.from_label(spec.conditional.show_if)
        if show_if is None or show_if.response_type is not ResponseType.YES_NO:
            raise ValueError(
                f"question {spec.number}: show_if must be a yes/no label, "
                f"got {spec.conditional.show_if!r}"
            )
        conditional = ConditionalDependency(trigger=spec.conditional.trigger, show_if=show_if)
    return Question(
        number=spec.number,
        text_es=spec.text_es,
        text_en=spec.text_en,
        response_type=spec.type,
        conditional=conditional,
        trigger=spec.trigger,
    )


def build_guide(spec: GuideSpec) -> Guide:
    categories = tuple(
        Category(
            id=c.id,
            name_es=c.name_es,
            name_en=c.name_en,
            description_es=c.description_es,
            description_en=c.description_en,
            questions=tuple(_to_question(q) for q in c.questions),
        )
        for c in spec.categories
    )
    return Guide(
        guide_type=spec.guide,
        title_es=spec.title_es,
        title_en=spec.title_en,
        description_es=spec.description_es,
        description_en=spec.description_en,
        company_size_es=spec.company_size_es,
        company_size_en=spec.company_size_en,
        categories=categories,
    )


def verify_guide(guide: Guide) -> list[str]:
    """
    Cross-check a guide against its mapping and its own trigger wiring.

    Returns a list of human-readable problems; empty means consistent.
    """
    mapping = get_category_mapping(guide.guide_type)
    problems = verify_guide_mapping(mapping)

    catalog_ids = [c.id for c in guide.categories]
    mapping_ids = [c.category_id for c in mapping.categories]
    if catalog_ids != mapping_ids:
        problems.append(f"category order differs: catalog {catalog_ids} vs mapping {mapping_ids}")

    numbers = [q.number for q in guide.iter_questions() if q.number > 0]
    duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
    if duplicates:
        problems.append(f"duplicate question numbers: {duplicates}")

    for category in guide.categories:
        category_mapping = mapping.category(category.id)
        if category_mapping is None:
            continue
        if set(category.question_numbers) != set(category_mapping.questions):
            problems.append(
                f"category '{category.id}' lists questions {list(category.question_numbers)}, "
                f"mapping has {list(category_mapping.questions)}"
            )
        for q in category.questions:
            if q.number > 0 and q.response_type is not category_mapping.response_type:
                problems.append(
                    f"question {q.number} is {q.response_type.value}, "
                    f"category '{category.id}' scores {category_mapping.response_type.value}"
                )

    for trigger, dependents in guide.dependents().items():
        trigger_question = guide.trigger_question(trigger)
        if trigger_question is None:
            problems.append(f"questions {list(dependents)} depend on missing trigger {trigger.value}")
            continue
        positions = [i for i, q in enumerate(guide.iter_questions()) if q is trigger_question]
        first_dependent = min(
            i for i, q in enumerate(guide.iter_questions()) if q.number in dependents
        )
        if positions[0] > first_dependent:
            problems.append(f"trigger {trigger.value} is asked after its dependent questions")

    return problems


def load_guide_file(path: Path) -> Guide:
    logger.debug(f"Loading guide definition from {path.name}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
        spec = GuideSpec.model_validate(raw)
        guide = build_guide(spec)
    except (OSError, json.JSONDecodeError, PydanticValidationError, ValueError) as e:
        raise CatalogIntegrityError(path.stem, [str(e)]) from e

    problems = verify_guide(guide)
    if problems:
        logger.error(f"Guide {guide.guide_type.value} failed integrity checks: {problems}")
        raise CatalogIntegrityError(guide.guide_type.value, problems)
    return guide


@lru_cache(maxsize=1)
def load_catalog() -> dict[GuideType, Guide]:
    catalog = {gt: load_guide_file(DATA_DIR / name) for gt, name in _GUIDE_FILES.items()}
    for gt, guide in catalog.items():
        if guide.guide_type is not gt:
            raise CatalogIntegrityError(gt.value, [f"{_GUIDE_FILES[gt]} declares guide {guide.guide_type.value}"])
    logger.info(f"Guide catalog loaded: {', '.join(f'{g.value}={c.total_questions}' for g, c in catalog.items())}")
    return catalog


def get_guide(guide_type: GuideType | str) -> Guide:
    return load_catalog()[GuideType(guide_type)]


def list_guides() -> list[Guide]:
    return list(load_catalog().values())


def get_trigger_dependents(guide_type: GuideType | str) -> dict[Trigger, tuple[int, ...]]:
    """Trigger -> dependent question numbers for one guide."""
    return get_guide(guide_type).dependents()
