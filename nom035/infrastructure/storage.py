"""
Key-value storage behind assessment drafts and history.

The session layer only sees ``KeyValueStorage``; values are opaque strings
(JSON documents produced by ``AssessmentRecord``).
"""

from __future__ import annotations

import threading
from typing import Protocol, runtime_checkable

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from .config import StorageConfig, get_settings
from .db import create_database_engine, create_session_factory, initialise_database
from .logging import get_logger
from .repositories import KeyValueRepo
from .uow import UnitOfWork

logger = get_logger(__name__)


@runtime_checkable
class KeyValueStorage(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStorage:
    """Process-local storage; contents vanish with the process."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._data[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)


class SqlKeyValueStorage:
    """Storage in the ``kv_entries`` table, one unit of work per call."""

    def __init__(self, SessionLocal: sessionmaker):
        self.SessionLocal = SessionLocal

    def get(self, key: str) -> str | None:
        with UnitOfWork(self.SessionLocal, "kv_get").begin() as s:
            return KeyValueRepo(s).get_value(key)

    def set(self, key: str, value: str) -> None:
        with UnitOfWork(self.SessionLocal, "kv_put").begin() as s:
            KeyValueRepo(s).put_value(key, value)

    def delete(self, key: str) -> None:
        with UnitOfWork(self.SessionLocal, "kv_delete").begin() as s:
            KeyValueRepo(s).delete_key(key)

    def keys(self) -> list[str]:
        with UnitOfWork(self.SessionLocal, "kv_keys").begin() as s:
            return KeyValueRepo(s).keys()

    @classmethod
    def from_engine(cls, engine: Engine) -> SqlKeyValueStorage:
        initialise_database(engine)
        return cls(create_session_factory(engine))


def create_storage(config: StorageConfig | None = None) -> KeyValueStorage:
    """
    Build the storage backend named by the configuration.

    Example:
        >>> storage = create_storage(StorageConfig(backend="memory"))
        >>> storage.set("k", "v")
    """
    if config is None:
        config = get_settings().storage

    if config.backend == "memory":
        logger.info("Using in-memory assessment storage")
        return InMemoryStorage()

    logger.info(f"Using {config.backend} assessment storage")
    return SqlKeyValueStorage.from_engine(create_database_engine(config))
