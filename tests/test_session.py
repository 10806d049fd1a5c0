from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from nom035.application.session import AssessmentHistory, AssessmentSession
from nom035.domain.imports import RawRow, validate_imported_data
from nom035.domain.models import (
    Answer,
    AssessmentStatus,
    GuideType,
    ImportMetadata,
    RiskTier,
    Trigger,
)
from nom035.domain.schemas import AssessmentRecord
from nom035.infrastructure.config import StorageConfig
from nom035.infrastructure.exceptions import (
    AssessmentNotFoundError,
    AssessmentStateError,
    IncompleteAssessmentError,
    StorageError,
    ValidationError,
)
from nom035.infrastructure.storage import (
    InMemoryStorage,
    KeyValueStorage,
    SqlKeyValueStorage,
    create_storage,
)

DRAFT_KEY = "test.draft"
HISTORY_KEY = "test.history"


def make_session(storage: KeyValueStorage | None = None, autosave: bool = True) -> AssessmentSession:
    storage = storage or InMemoryStorage()
    history = AssessmentHistory(storage, key=HISTORY_KEY)
    return AssessmentSession(storage, history=history, draft_key=DRAFT_KEY, autosave=autosave)


def sql_storage() -> SqlKeyValueStorage:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    return SqlKeyValueStorage.from_engine(engine)


def answer_all(session: AssessmentSession, label: str = "Sí") -> None:
    for question in session.guide.iter_questions():
        if question.number > 0:
            session.record_response(question.number, label)


class TestAnswering:
    def test_record_and_replace_response(self):
        session = make_session()
        session.start("I")
        session.record_response(1, "Sí")
        session.record_response(1, "No")

        assert session.get_response(1).answer is Answer.NO
        assert len(session.assessment.responses) == 1

    def test_rejects_unknown_question(self):
        session = make_session()
        session.start("I")
        with pytest.raises(ValidationError):
            session.record_response(16, "Sí")
        with pytest.raises(ValidationError):
            session.record_response(0, "Sí")

    def test_rejects_wrong_answer_type(self):
        session = make_session()
        session.start("I")
        with pytest.raises(ValidationError) as exc_info:
            session.record_response(1, "Siempre")
        assert exc_info.value.field == "answer"

    def test_rejects_unknown_label(self):
        session = make_session()
        session.start("II")
        with pytest.raises(ValidationError):
            session.record_response(1, "Siempres")

    def test_requires_started_assessment(self):
        session = make_session()
        with pytest.raises(AssessmentStateError):
            session.record_response(1, "Sí")


class TestConditionalSections:
    def test_trigger_shows_and_hides_questions(self):
        session = make_session()
        session.start("II")
        violence = len(session.guide.categories) - 1

        hidden = [q.number for q in session.visible_questions(violence)]
        assert 41 not in hidden and 44 not in hidden

        session.set_conditional_answer(Trigger.SERVICE_CLIENTS, "Sí")
        visible = [q.number for q in session.visible_questions(violence)]
        assert {41, 42, 43}.issubset(visible)
        assert 44 not in visible

    def test_no_discards_dependent_answers(self):
        session = make_session()
        session.start("II")
        session.set_conditional_answer("Boss", "Sí")
        session.record_response(44, "Siempre")
        session.set_conditional_answer("Boss", "No")

        assert session.get_response(44) is None
        assert session.get_response(0).answer is Answer.NO
        assert session.assessment.conditional_answers.boss is Answer.NO

    def test_trigger_rejects_likert(self):
        session = make_session()
        session.start("III")
        with pytest.raises(ValidationError):
            session.set_conditional_answer("Boss", "Siempre")

    def test_unanswered_only_counts_visible_questions(self):
        session = make_session()
        session.start("II")
        assert session.unanswered_questions() == list(range(1, 41))

        session.set_conditional_answer("ServiceClients", "Sí")
        assert session.unanswered_questions() == list(range(1, 44))


class TestNavigation:
    def test_can_advance_one_category_at_a_time(self):
        session = make_session()
        session.start("I")
        session.go_to_category(1)
        assert session.assessment.current_category_index == 1
        with pytest.raises(AssessmentStateError):
            session.go_to_category(3)

    def test_completed_categories_are_reachable(self):
        session = make_session()
        session.start("I")
        session.mark_category_completed(3)
        assert session.can_go_to_category(3)
        session.go_to_category(3)
        session.go_to_category(0)

    def test_category_index_bounds(self):
        session = make_session()
        session.start("I")
        with pytest.raises(ValidationError):
            session.mark_category_completed(4)


class TestLifecycle:
    def test_complete_requires_confirmation_when_incomplete(self):
        session = make_session()
        session.start("I")
        session.record_response(1, "Sí")

        with pytest.raises(IncompleteAssessmentError) as exc_info:
            session.complete()
        assert exc_info.value.missing_questions == list(range(2, 16))
        assert session.assessment.status is AssessmentStatus.DRAFT

        result = session.complete(allow_incomplete=True)
        assert result.answered_questions == 1
        assert session.assessment.status is AssessmentStatus.COMPLETED

    def test_complete_moves_draft_to_history(self):
        storage = InMemoryStorage()
        session = make_session(storage)
        session.start("I")
        answer_all(session, "Sí")
        assert storage.get(DRAFT_KEY) is not None

        result = session.complete()

        assert result.overall_score == 15
        assert result.overall_risk.tier is RiskTier.ALTO
        assert storage.get(DRAFT_KEY) is None
        assert len(session.history) == 1
        stored = session.history.list()[0]
        assert stored.id == session.assessment.id
        assert stored.completed_at is not None

    def test_failed_history_write_keeps_the_draft(self):
        class HistoryWriteFails(InMemoryStorage):
            fail = True

            def set(self, key: str, value: str) -> None:
                if key == HISTORY_KEY and self.fail:
                    raise StorageError("disk full", "kv_set")
                super().set(key, value)

        storage = HistoryWriteFails()
        session = make_session(storage)
        session.start("I")
        answer_all(session, "Sí")

        with pytest.raises(StorageError):
            session.complete()

        assert session.assessment.status is AssessmentStatus.DRAFT
        assert session.assessment.completed_at is None
        assert len(session.history) == 0
        assert storage.get(DRAFT_KEY) is not None
        session.record_response(1, "No")
        assert session.save() is True

        storage.fail = False
        result = session.complete()
        assert result.overall_score == 14
        assert session.assessment.status is AssessmentStatus.COMPLETED
        assert len(session.history) == 1
        assert storage.get(DRAFT_KEY) is None

    def test_completed_assessment_is_read_only(self):
        session = make_session()
        session.start("I")
        session.complete(allow_incomplete=True)
        with pytest.raises(AssessmentStateError) as exc_info:
            session.record_response(1, "Sí")
        assert "submitted" in exc_info.value.user_message

    def test_load_assessment_from_history(self):
        session = make_session()
        session.start("I")
        session.record_response(2, "Sí")
        session.complete(allow_incomplete=True)
        assessment_id = session.assessment.id

        session.start("II")
        loaded = session.load_assessment(assessment_id)
        assert loaded.guide_type is GuideType.I
        assert session.report().overall_score == 1

        with pytest.raises(AssessmentNotFoundError):
            session.load_assessment("missing")

    def test_history_only_accepts_completed(self):
        session = make_session()
        assessment = session.start("I")
        with pytest.raises(AssessmentStateError):
            session.history.append(assessment)


class TestPersistence:
    def test_draft_survives_new_session(self):
        storage = InMemoryStorage()
        first = make_session(storage)
        first.start("II")
        first.set_conditional_answer("ServiceClients", "Sí")
        first.record_response(41, "Casi siempre")
        first.mark_category_completed(0)

        second = make_session(storage)
        resumed = second.load()

        assert resumed is not None
        assert resumed.id == first.assessment.id
        assert resumed.responses.get(41).answer is Answer.CASI_SIEMPRE
        assert resumed.conditional_answers.service_clients is Answer.SI
        assert resumed.completed_categories == {0}
        assert resumed.started_at.tzinfo is not None

    def test_batch_saves_once_or_not_at_all(self):
        storage = InMemoryStorage()
        session = make_session(storage)
        session.start("II")
        before = storage.get(DRAFT_KEY)

        with pytest.raises(ValidationError):
            with session.batch():
                session.set_conditional_answer(Trigger.BOSS, "Sí")
                session.record_response(1, "Siempre")
                session.record_response(2, "Sí")

        assert storage.get(DRAFT_KEY) == before
        assert len(session.assessment.responses) == 0
        assert session.assessment.conditional_answers.boss is None
        assert session.autosave is True

        with session.batch():
            session.record_response(1, "Siempre")
            session.record_response(2, "Nunca")
        record = AssessmentRecord.model_validate_json(storage.get(DRAFT_KEY))
        assert [r.question_number for r in record.responses] == [1, 2]

    def test_autosave_disabled(self):
        storage = InMemoryStorage()
        session = make_session(storage, autosave=False)
        session.start("I")
        assert storage.get(DRAFT_KEY) is None
        assert session.save() is True
        assert storage.get(DRAFT_KEY) is not None

    def test_unreadable_draft_is_ignored(self):
        storage = InMemoryStorage({DRAFT_KEY: "{not json"})
        assert make_session(storage).load() is None

    def test_unreadable_history_raises(self):
        storage = InMemoryStorage({HISTORY_KEY: '[{"id": 1}]'})
        with pytest.raises(StorageError):
            AssessmentHistory(storage, key=HISTORY_KEY).list()

    def test_clear_removes_draft(self):
        storage = InMemoryStorage()
        session = make_session(storage)
        session.start("I")
        session.clear()
        assert session.assessment is None
        assert storage.get(DRAFT_KEY) is None

    def test_record_round_trip_keeps_import_metadata(self):
        session = make_session()
        assessment = session.start("III")
        assessment.import_metadata = ImportMetadata(
            file_name="respuestas.xlsx",
            file_size=2048,
            uploaded_at=datetime(2024, 5, 1, tzinfo=UTC),
            guide_type=GuideType.III,
        )
        restored = AssessmentRecord.model_validate_json(
            AssessmentRecord.from_domain(assessment).model_dump_json()
        ).to_domain()
        assert restored.import_metadata.file_name == "respuestas.xlsx"
        assert restored.import_metadata.uploaded_at == datetime(2024, 5, 1, tzinfo=UTC)


class TestApplyImport:
    def test_starts_draft_and_sets_triggers(self):
        validation = validate_imported_data(
            [RawRow(1, "Siempre"), RawRow(45, "Nunca"), RawRow(0, "Sí")], "II"
        )
        session = make_session()

        applied = session.apply_import(validation)

        assert applied == 2
        assert session.assessment.guide_type is GuideType.II
        assert session.assessment.conditional_answers.boss is Answer.SI
        assert session.assessment.conditional_answers.service_clients is None

    def test_skips_answers_of_the_wrong_type(self):
        validation = validate_imported_data([RawRow(1, "Siempre"), RawRow(2, "Sí")], "I")
        session = make_session()
        assert session.apply_import(validation) == 1
        assert session.get_response(1) is None

    def test_guide_mismatch(self):
        session = make_session()
        session.start("I")
        validation = validate_imported_data([RawRow(1, "Siempre")], "II")
        with pytest.raises(ValidationError):
            session.apply_import(validation)


class TestStorageBackends:
    def test_in_memory_storage(self):
        storage = InMemoryStorage()
        storage.set("a", "1")
        storage.set("a", "2")
        assert storage.get("a") == "2"
        storage.delete("a")
        storage.delete("a")
        assert storage.get("a") is None
        assert isinstance(storage, KeyValueStorage)

    def test_sql_storage(self):
        storage = sql_storage()
        storage.set("nom035.x", "one")
        storage.set("nom035.x", "two")
        storage.set("other", "three")

        assert storage.get("nom035.x") == "two"
        assert storage.keys() == ["nom035.x", "other"]
        storage.delete("nom035.x")
        assert storage.get("nom035.x") is None
        assert isinstance(storage, KeyValueStorage)

    def test_session_on_sql_storage(self):
        storage = sql_storage()
        session = make_session(storage)
        session.start("I")
        answer_all(session, "No")
        session.complete()

        history = AssessmentHistory(storage, key=HISTORY_KEY)
        assert len(history) == 1
        assert history.list()[0].status is AssessmentStatus.COMPLETED

    def test_create_storage_memory(self):
        assert isinstance(create_storage(StorageConfig(backend="memory")), InMemoryStorage)

    def test_create_storage_sqlite_file(self, tmp_path):
        config = StorageConfig(backend="sqlite", sqlite_path=str(tmp_path / "kv.db"))
        storage = create_storage(config)
        storage.set("k", "v")
        assert storage.get("k") == "v"
