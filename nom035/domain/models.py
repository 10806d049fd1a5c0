from __future__ import annotations

import uuid
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, IntEnum, StrEnum


class GuideType(StrEnum):
    I = "I"
    II = "II"
    III = "III"


class ResponseType(StrEnum):
    LIKERT = "likert"
    YES_NO = "yesno"


class Answer(Enum):
    """Canonical answer labels; each member knows its response type and ordinal."""

    SIEMPRE = "Siempre"
    CASI_SIEMPRE = "Casi siempre"
    ALGUNAS_VECES = "Algunas veces"
    CASI_NUNCA = "Casi nunca"
    NUNCA = "Nunca"
    SI = "Sí"
    NO = "No"

    @property
    def label(self) -> str:
        return self.value

    @property
    def response_type(self) -> ResponseType:
        if self in (Answer.SI, Answer.NO):
            return ResponseType.YES_NO
        return ResponseType.LIKERT

    @property
    def ordinal(self) -> int:
        return _ORDINALS[self]

    @property
    def mirrored(self) -> Answer:
        """Likert answer at the symmetric position of the scale (Siempre <-> Nunca)."""
        if self.response_type is not ResponseType.LIKERT:
            raise ValueError(f"{self.label!r} is not a Likert answer")
        return _LIKERT_MIRROR[self]

    @classmethod
    def from_label(cls, label: str) -> Answer | None:
        """Exact, case-sensitive lookup; None for anything else."""
        return _BY_LABEL.get(label)


_ORDINALS: dict[Answer, int] = {
    Answer.SIEMPRE: 4,
    Answer.CASI_SIEMPRE: 3,
    Answer.ALGUNAS_VECES: 2,
    Answer.CASI_NUNCA: 1,
    Answer.NUNCA: 0,
    Answer.SI: 1,
    Answer.NO: 0,
}

_LIKERT_MIRROR: dict[Answer, Answer] = {
    Answer.SIEMPRE: Answer.NUNCA,
    Answer.CASI_SIEMPRE: Answer.CASI_NUNCA,
    Answer.ALGUNAS_VECES: Answer.ALGUNAS_VECES,
    Answer.CASI_NUNCA: Answer.CASI_SIEMPRE,
    Answer.NUNCA: Answer.SIEMPRE,
}

_BY_LABEL: dict[str, Answer] = {a.value: a for a in Answer}

LIKERT_LABELS: tuple[str, ...] = tuple(
    a.label for a in Answer if a.response_type is ResponseType.LIKERT
)
YES_NO_LABELS: tuple[str, ...] = tuple(
    a.label for a in Answer if a.response_type is ResponseType.YES_NO
)
ANSWER_LABELS: tuple[str, ...] = LIKERT_LABELS + YES_NO_LABELS


class Trigger(StrEnum):
    """Yes/no gate questions that reveal conditional sections."""

    SERVICE_CLIENTS = "ServiceClients"
    BOSS = "Boss"


@dataclass(slots=True, frozen=True)
class ConditionalDependency:
    trigger: Trigger
    show_if: Answer = Answer.SI


@dataclass(slots=True, frozen=True)
class Question:
    number: int  # 0 marks a trigger pseudo-question
    text_es: str
    text_en: str
    response_type: ResponseType
    conditional: ConditionalDependency | None = None
    trigger: Trigger | None = None

    @property
    def is_trigger(self) -> bool:
        return self.trigger is not None

    def text(self, language: str = "es") -> str:
        return self.text_en if language == "en" else self.text_es


@dataclass(slots=True, frozen=True)
class Category:
    id: str
    name_es: str
    name_en: str
    description_es: str
    description_en: str
    questions: tuple[Question, ...]

    @property
    def question_numbers(self) -> tuple[int, ...]:
        """Scored question numbers, trigger pseudo-questions excluded."""
        return tuple(q.number for q in self.questions if q.number > 0)

    def name(self, language: str = "es") -> str:
        return self.name_en if language == "en" else self.name_es


@dataclass(slots=True, frozen=True)
class Guide:
    guide_type: GuideType
    title_es: str
    title_en: str
    description_es: str
    description_en: str
    company_size_es: str
    company_size_en: str
    categories: tuple[Category, ...]

    @property
    def total_questions(self) -> int:
        return sum(len(c.question_numbers) for c in self.categories)

    def iter_questions(self) -> Iterator[Question]:
        for category in self.categories:
            yield from category.questions

    def question(self, number: int) -> Question | None:
        if number <= 0:
            return None
        for q in self.iter_questions():
            if q.number == number:
                return q
        return None

    def trigger_question(self, trigger: Trigger) -> Question | None:
        for q in self.iter_questions():
            if q.trigger is trigger:
                return q
        return None

    def dependents(self) -> dict[Trigger, tuple[int, ...]]:
        """Trigger -> question numbers it reveals."""
        result: dict[Trigger, list[int]] = {}
        for q in self.iter_questions():
            if q.conditional is not None:
                result.setdefault(q.conditional.trigger, []).append(q.number)
        return {trigger: tuple(numbers) for trigger, numbers in result.items()}

    def title(self, language: str = "es") -> str:
        return self.title_en if language == "en" else self.title_es


@dataclass(slots=True, frozen=True)
class Response:
    question_number: int
    answer: Answer | None  # None when built from an unrecognised label
    label: str

    @classmethod
    def of(cls, question_number: int, answer: Answer | str) -> Response:
        if isinstance(answer, Answer):
            return cls(question_number, answer, answer.label)
        label = str(answer).strip()
        return cls(question_number, Answer.from_label(label), label)

    @property
    def is_recognised(self) -> bool:
        return self.answer is not None


class ResponseStore:
    """Ordered responses, at most one per question number.

    A later write for the same number replaces the earlier one in place.
    """

    def __init__(self, responses: Iterable[Response] | None = None):
        self._items: dict[int, Response] = {}
        for response in responses or ():
            self.put(response)

    def put(self, response: Response) -> None:
        self._items[response.question_number] = response

    def get(self, question_number: int) -> Response | None:
        return self._items.get(question_number)

    def remove(self, question_number: int) -> None:
        self._items.pop(question_number, None)

    def clear(self) -> None:
        self._items.clear()

    def answered_numbers(self) -> set[int]:
        return {n for n in self._items if n > 0}

    def to_list(self) -> list[Response]:
        return list(self._items.values())

    def __contains__(self, question_number: object) -> bool:
        return question_number in self._items

    def __iter__(self) -> Iterator[Response]:
        return iter(list(self._items.values()))

    def __len__(self) -> int:
        return len(self._items)


@dataclass(slots=True)
class ConditionalAnswers:
    service_clients: Answer | None = None
    boss: Answer | None = None

    def get(self, trigger: Trigger) -> Answer | None:
        if trigger is Trigger.SERVICE_CLIENTS:
            return self.service_clients
        return self.boss

    def set(self, trigger: Trigger, answer: Answer) -> None:
        if answer.response_type is not ResponseType.YES_NO:
            raise ValueError(f"Trigger {trigger.value} takes a yes/no answer, got {answer.label!r}")
        if trigger is Trigger.SERVICE_CLIENTS:
            self.service_clients = answer
        else:
            self.boss = answer

    def shows(self, dependency: ConditionalDependency | None) -> bool:
        if dependency is None:
            return True
        return self.get(dependency.trigger) is dependency.show_if

    def as_dict(self) -> dict[str, str]:
        return {
            trigger.value: answer.label
            for trigger in Trigger
            if (answer := self.get(trigger)) is not None
        }


class AssessmentStatus(StrEnum):
    DRAFT = "draft"
    COMPLETED = "completed"


class ImportSource(StrEnum):
    MANUAL = "manual"
    UPLOAD = "upload"


@dataclass(slots=True)
class ImportMetadata:
    file_name: str
    file_size: int
    uploaded_at: datetime
    guide_type: GuideType
    source: ImportSource = ImportSource.UPLOAD


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class Assessment:
    guide_type: GuideType
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    responses: ResponseStore = field(default_factory=ResponseStore)
    conditional_answers: ConditionalAnswers = field(default_factory=ConditionalAnswers)
    completed_categories: set[int] = field(default_factory=set)
    current_category_index: int = 0
    started_at: datetime = field(default_factory=_now)
    completed_at: datetime | None = None
    status: AssessmentStatus = AssessmentStatus.DRAFT
    import_metadata: ImportMetadata | None = None

    @property
    def is_completed(self) -> bool:
        return self.status is AssessmentStatus.COMPLETED


class RiskTier(IntEnum):
    """Ordered severities; a larger value is more severe."""

    NULO = 0
    BAJO = 1
    MEDIO = 2
    ALTO = 3
    MUY_ALTO = 4

    @property
    def label_es(self) -> str:
        return _TIER_LABELS[self][0]

    @property
    def label_en(self) -> str:
        return _TIER_LABELS[self][1]

    def label(self, language: str = "es") -> str:
        return self.label_en if language == "en" else self.label_es

    @classmethod
    def from_label(cls, label: str) -> RiskTier:
        """Accepts Spanish or English labels and enum names, case-insensitive."""
        wanted = label.strip().lower().replace("_", " ")
        for tier in cls:
            if wanted in (tier.label_es.lower(), tier.label_en.lower(), tier.name.lower().replace("_", " ")):
                return tier
        raise ValueError(f"Unknown risk level: {label!r}")


_TIER_LABELS: dict[RiskTier, tuple[str, str]] = {
    RiskTier.NULO: ("Nulo", "None"),
    RiskTier.BAJO: ("Bajo", "Low"),
    RiskTier.MEDIO: ("Medio", "Medium"),
    RiskTier.ALTO: ("Alto", "High"),
    RiskTier.MUY_ALTO: ("Muy Alto", "Very High"),
}


@dataclass(slots=True, frozen=True)
class RiskLevel:
    tier: RiskTier
    color: str
    description_es: str
    description_en: str

    @property
    def level(self) -> str:
        return self.tier.label_es

    @property
    def level_en(self) -> str:
        return self.tier.label_en

    def description(self, language: str = "es") -> str:
        return self.description_en if language == "en" else self.description_es


@dataclass(slots=True, frozen=True)
class CategoryRisk:
    category_id: str
    category_name_es: str
    category_name_en: str
    score: int
    max_score: int
    risk_level: RiskLevel


@dataclass(slots=True, frozen=True)
class NOM35Result:
    guide_type: GuideType
    overall_risk: RiskLevel
    overall_score: int
    category_risks: tuple[CategoryRisk, ...]
    total_questions: int
    answered_questions: int
    completion_date: datetime
