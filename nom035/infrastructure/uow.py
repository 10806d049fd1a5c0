from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .exceptions import handle_storage_error


class UnitOfWork:
    """One SQLAlchemy session per block: commit on success, roll back on any error.

    Driver errors leave the block as ``StorageError``.
    """

    def __init__(self, SessionLocal: sessionmaker, operation: str = "storage operation"):
        self.SessionLocal = SessionLocal
        self.operation = operation

    @contextmanager
    def begin(self) -> Iterator[Session]:
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except SQLAlchemyError as e:
            s.rollback()
            raise handle_storage_error(e, self.operation) from e
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()
