from __future__ import annotations

from fastapi import Request

from nom035.application.session import AssessmentHistory, AssessmentSession
from nom035.infrastructure.config import get_settings
from nom035.infrastructure.storage import KeyValueStorage, create_storage


def get_storage(request: Request) -> KeyValueStorage:
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        storage = create_storage(get_settings().storage)
        request.app.state.storage = storage
    return storage


def get_history(request: Request) -> AssessmentHistory:
    history = getattr(request.app.state, "history", None)
    if history is None:
        history = AssessmentHistory(get_storage(request))
        request.app.state.history = history
    return history


def get_assessment_session(request: Request) -> AssessmentSession:
    """The single interactive session of this process; resumes a stored draft on first use."""
    session = getattr(request.app.state, "assessment_session", None)
    if session is None:
        session = AssessmentSession(get_storage(request), history=get_history(request))
        session.load()
        request.app.state.assessment_session = session
    return session
