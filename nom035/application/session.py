"""
Caller-owned assessment session: the interactive draft, its autosave and the
history of completed assessments.

The scoring engine stays pure; everything stateful about an assessment in
progress lives here, persisted through an injected ``KeyValueStorage``.
"""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from copy import deepcopy
from dataclasses import replace
from datetime import UTC, datetime

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from ..domain.catalog import get_guide
from ..domain.models import (
    Answer,
    Assessment,
    AssessmentStatus,
    Guide,
    GuideType,
    ImportMetadata,
    NOM35Result,
    Question,
    Response,
    Trigger,
)
from ..domain.schemas import AssessmentRecord, ImportValidation
from ..domain.services import generate_report
from ..infrastructure.config import get_settings
from ..infrastructure.exceptions import (
    AssessmentNotFoundError,
    AssessmentStateError,
    IncompleteAssessmentError,
    StorageError,
    ValidationError,
)
from ..infrastructure.logging import LogContext, get_logger
from ..infrastructure.storage import KeyValueStorage

logger = get_logger(__name__)

_RECORD_LIST = TypeAdapter(list[AssessmentRecord])


class AssessmentHistory:
    """Append-only list of completed assessments kept under one storage key."""

    def __init__(self, storage: KeyValueStorage, key: str | None = None):
        self.storage = storage
        self.key = key or get_settings().storage.history_key

    def _records(self) -> list[AssessmentRecord]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            return _RECORD_LIST.validate_json(raw)
        except PydanticValidationError as e:
            raise StorageError(f"History under '{self.key}' is unreadable: {e}", "history_read") from e

    def list(self) -> list[Assessment]:
        return [record.to_domain() for record in self._records()]

    def get(self, assessment_id: str) -> Assessment | None:
        for record in self._records():
            if record.id == assessment_id:
                return record.to_domain()
        return None

    def append(self, assessment: Assessment) -> None:
        if not assessment.is_completed:
            raise AssessmentStateError(
                "Only completed assessments can be added to the history",
                assessment_id=assessment.id,
                status=assessment.status.value,
            )
        records = self._records()
        records.append(AssessmentRecord.from_domain(assessment))
        self.storage.set(self.key, _RECORD_LIST.dump_json(records).decode("utf-8"))
        logger.info(f"Assessment {assessment.id} appended to history ({len(records)} total)")

    def __len__(self) -> int:
        return len(self._records())


class AssessmentSession:
    """
    The assessment currently being answered or displayed.

    Lifecycle is ``draft -> completed``. Every mutation of a draft is
    autosaved; a failed autosave is logged and otherwise ignored so it never
    interrupts the questionnaire. ``save()`` called explicitly does raise.

    Example:
        >>> session = AssessmentSession(InMemoryStorage())
        >>> session.start("I")
        >>> session.record_response(1, "Sí")
        >>> session.report().overall_score
        1
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        history: AssessmentHistory | None = None,
        draft_key: str | None = None,
        autosave: bool | None = None,
    ):
        settings = get_settings()
        self.storage = storage
        self.history = history or AssessmentHistory(storage)
        self.draft_key = draft_key or settings.storage.draft_key
        self.autosave = settings.app.enable_autosave if autosave is None else autosave
        self._assessment: Assessment | None = None

    # ---------- State ----------

    @property
    def assessment(self) -> Assessment | None:
        return self._assessment

    @property
    def guide(self) -> Guide:
        return get_guide(self._current().guide_type)

    def _current(self) -> Assessment:
        if self._assessment is None:
            raise AssessmentStateError("No assessment has been started")
        return self._assessment

    def _draft(self) -> Assessment:
        assessment = self._current()
        if assessment.is_completed:
            raise AssessmentStateError(
                "Completed assessments are read-only",
                assessment_id=assessment.id,
                status=assessment.status.value,
            )
        return assessment

    def _changed(self) -> None:
        if not self.autosave:
            return
        try:
            self.save()
        except Exception:
            logger.exception("Autosave of the assessment draft failed")

    @contextmanager
    def batch(self) -> Iterator[Assessment]:
        """
        Apply several edits as one change.

        The draft is autosaved once when the block exits cleanly. If any edit
        raises, the draft goes back to its state before the block and
        nothing is saved.
        """
        assessment = self._draft()
        snapshot = deepcopy(assessment)
        autosave, self.autosave = self.autosave, False
        try:
            yield assessment
        except Exception:
            self._assessment = snapshot
            raise
        finally:
            self.autosave = autosave
        self._changed()

    # ---------- Lifecycle ----------

    def start(self, guide_type: GuideType | str) -> Assessment:
        guide_type = GuideType(guide_type)
        get_guide(guide_type)
        self._assessment = Assessment(guide_type=guide_type)
        with LogContext(assessment_id=self._assessment.id, guide_type=guide_type.value):
            logger.info(f"Started Guide {guide_type.value} assessment")
        self._changed()
        return self._assessment

    def record_response(self, question_number: int, answer: Answer | str) -> Response:
        """
        Store one answer, replacing any earlier answer to the same question.

        Raises:
            ValidationError: unknown question, unknown label, or an answer of
                the wrong type for the question
        """
        assessment = self._draft()
        if question_number == 0:
            raise ValidationError(
                "question_number", "trigger questions are answered with set_conditional_answer", 0
            )
        question = self.guide.question(question_number)
        if question is None:
            raise ValidationError(
                "question_number",
                f"Guide {assessment.guide_type.value} has no question {question_number}",
                question_number,
            )
        response = Response.of(question_number, answer)
        self._check_answer(question, response)

        assessment.responses.put(response)
        self._changed()
        return response

    def _check_answer(self, question: Question, response: Response) -> None:
        if response.answer is None:
            raise ValidationError("answer", f"'{response.label}' is not a valid answer", response.label)
        if response.answer.response_type is not question.response_type:
            raise ValidationError(
                "answer",
                f"question {question.number} takes a {question.response_type.value} answer",
                response.label,
            )

    def get_response(self, question_number: int) -> Response | None:
        return self._current().responses.get(question_number)

    def set_conditional_answer(self, trigger: Trigger | str, answer: Answer | str) -> None:
        """
        Answer a gate question ("do you serve clients?", "are you a boss?").

        The answer is also recorded as pseudo-question 0. Answering "No"
        discards responses already given to the questions it hides.
        """
        assessment = self._draft()
        trigger = Trigger(trigger)
        if not isinstance(answer, Answer):
            parsed = Answer.from_label(str(answer).strip())
            if parsed is None:
                raise ValidationError("answer", f"'{answer}' is not a valid answer", answer)
            answer = parsed
        try:
            assessment.conditional_answers.set(trigger, answer)
        except ValueError as e:
            raise ValidationError("answer", str(e), answer.label) from e

        assessment.responses.put(Response.of(0, answer))
        dependents = self.guide.dependents().get(trigger, ())
        if answer is not Answer.SI:
            for number in dependents:
                assessment.responses.remove(number)
        logger.debug(f"Trigger {trigger.value} set to {answer.label}")
        self._changed()

    def visible_questions(self, category_index: int) -> list[Question]:
        assessment = self._current()
        category = self._category(category_index)
        return [q for q in category.questions if assessment.conditional_answers.shows(q.conditional)]

    def _category(self, category_index: int):
        categories = self.guide.categories
        if not 0 <= category_index < len(categories):
            raise ValidationError(
                "category_index",
                f"must be between 0 and {len(categories) - 1}",
                category_index,
            )
        return categories[category_index]

    def mark_category_completed(self, category_index: int) -> None:
        assessment = self._draft()
        self._category(category_index)
        if category_index not in assessment.completed_categories:
            assessment.completed_categories.add(category_index)
            self._changed()

    def can_go_to_category(self, category_index: int) -> bool:
        assessment = self._current()
        return (
            category_index <= assessment.current_category_index
            or category_index in assessment.completed_categories
        )

    def go_to_category(self, category_index: int) -> None:
        assessment = self._draft()
        self._category(category_index)
        if not self.can_go_to_category(category_index) and category_index != assessment.current_category_index + 1:
            raise AssessmentStateError(
                f"Category {category_index} is not reachable yet",
                assessment_id=assessment.id,
                status=assessment.status.value,
            )
        assessment.current_category_index = category_index
        self._changed()

    def unanswered_questions(self) -> list[int]:
        """Visible scored questions with no response yet."""
        assessment = self._current()
        answered = assessment.responses.answered_numbers()
        missing = []
        for question in self.guide.iter_questions():
            if question.number <= 0 or question.number in answered:
                continue
            if assessment.conditional_answers.shows(question.conditional):
                missing.append(question.number)
        return missing

    def apply_import(
        self, validation: ImportValidation, metadata: ImportMetadata | None = None
    ) -> int:
        """
        Load the valid rows of an import into the draft.

        Starts a draft for the import's guide when none is active. Rows whose
        answer type does not fit the question are skipped with a warning.
        Returns the number of responses applied.
        """
        if self._assessment is None or self._assessment.is_completed:
            self.start(validation.guide_type)
        assessment = self._draft()
        if assessment.guide_type is not validation.guide_type:
            raise ValidationError(
                "guide_type",
                f"import is for Guide {validation.guide_type.value}, "
                f"the assessment uses Guide {assessment.guide_type.value}",
                validation.guide_type.value,
            )

        guide = self.guide
        applied = 0
        with LogContext(assessment_id=assessment.id, operation="apply_import"):
            for row in validation.valid_responses:
                if row.question_number == 0:
                    continue
                question = guide.question(row.question_number)
                response = Response.of(row.question_number, row.answer)
                if (
                    question is None
                    or response.answer is None
                    or response.answer.response_type is not question.response_type
                ):
                    logger.warning(
                        f"Row {row.row}: '{row.answer}' does not fit question "
                        f"{row.question_number}, skipped"
                    )
                    continue
                assessment.responses.put(response)
                applied += 1

            answered = assessment.responses.answered_numbers()
            for trigger, dependents in guide.dependents().items():
                if answered.intersection(dependents):
                    assessment.conditional_answers.set(trigger, Answer.SI)

            if metadata is not None:
                assessment.import_metadata = metadata
            logger.info(f"Applied {applied} imported responses")

        self._changed()
        return applied

    def complete(self, allow_incomplete: bool = False) -> NOM35Result:
        """
        Finalize the draft and add it to the history.

        Raises:
            IncompleteAssessmentError: questions are unanswered and
                ``allow_incomplete`` is False; the caller asks the user to
                confirm and calls again with ``allow_incomplete=True``
        """
        assessment = self._draft()
        missing = self.unanswered_questions()
        if missing and not allow_incomplete:
            raise IncompleteAssessmentError(missing, assessment_id=assessment.id)

        # the draft stays live and editable until the history write succeeds
        completed = replace(
            assessment, status=AssessmentStatus.COMPLETED, completed_at=datetime.now(UTC)
        )
        self.history.append(completed)
        self._assessment = assessment = completed
        try:
            self.storage.delete(self.draft_key)
        except Exception:
            logger.exception("Could not discard the stored draft after completion")

        with LogContext(assessment_id=assessment.id, guide_type=assessment.guide_type.value):
            logger.info(f"Assessment completed with {len(missing)} unanswered questions")
        return self.report()

    def report(self) -> NOM35Result:
        assessment = self._current()
        return generate_report(
            assessment.guide_type,
            assessment.responses.to_list(),
            self.guide.total_questions,
        )

    def load_assessment(self, assessment_id: str) -> Assessment:
        """Make a completed assessment from the history current, read-only."""
        assessment = self.history.get(assessment_id)
        if assessment is None:
            raise AssessmentNotFoundError(assessment_id)
        self._assessment = assessment
        return assessment

    # ---------- Persistence ----------

    def save(self) -> bool:
        """Write the current draft; False when there is nothing to write."""
        assessment = self._assessment
        if assessment is None or assessment.is_completed:
            return False
        payload = AssessmentRecord.from_domain(assessment).model_dump_json()
        self.storage.set(self.draft_key, payload)
        return True

    def load(self) -> Assessment | None:
        """Resume the stored draft, if any."""
        raw = self.storage.get(self.draft_key)
        if not raw:
            return None
        try:
            record = AssessmentRecord.model_validate_json(raw)
        except (PydanticValidationError, json.JSONDecodeError):
            logger.warning("Stored draft is unreadable and was ignored")
            return None
        self._assessment = record.to_domain()
        logger.info(f"Resumed draft {record.id} (Guide {record.guide_type.value})")
        return self._assessment

    def clear(self) -> None:
        self._assessment = None
        self.storage.delete(self.draft_key)
