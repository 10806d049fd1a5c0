from __future__ import annotations

import builtins
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from sqlalchemy.orm import Session

from .logging import log_storage_operation
from .models import KeyValueORM

T = TypeVar("T")  # ORM model type


class BaseRepository(Generic[T]):
    """
    Small generic repository with the CRUD helpers the storage layer needs.
    Subclasses set ``model`` and may add logging decorators.
    """

    model: type[T]  # must be set by subclasses

    def __init__(self, session: Session):
        if not hasattr(self, "model") or self.model is None:
            raise ValueError(f"{self.__class__.__name__}.model must be set to an ORM class.")
        self.s = session

    def get(self, id_: Any) -> T | None:
        return self.s.get(self.model, id_)

    def list(
        self,
        *filters: Any,
        order_by: Iterable[Any] | None = None,
        limit: int | None = None,
    ) -> builtins.list[T]:
        q = self.s.query(self.model)
        for f in filters:
            q = q.filter(f)
        for ob in order_by or ():
            q = q.order_by(ob)
        if limit:
            q = q.limit(limit)
        return list(q.all())

    def create(self, **fields: Any) -> T:
        obj = self.model(**fields)
        self.s.add(obj)
        self.s.flush()
        return obj

    def update(self, obj: T, **fields: Any) -> T:
        for k, v in fields.items():
            setattr(obj, k, v)
        self.s.flush()
        return obj

    def delete(self, obj: T) -> None:
        self.s.delete(obj)
        self.s.flush()


class KeyValueRepo(BaseRepository[KeyValueORM]):
    model = KeyValueORM

    @log_storage_operation("kv_get")
    def get_value(self, key: str) -> str | None:
        row = self.get(key)
        return row.value if row is not None else None

    @log_storage_operation("kv_put")
    def put_value(self, key: str, value: str) -> KeyValueORM:
        row = self.get(key)
        if row is None:
            return self.create(key=key, value=value)
        return self.update(row, value=value)

    @log_storage_operation("kv_delete")
    def delete_key(self, key: str) -> bool:
        row = self.get(key)
        if row is None:
            return False
        self.delete(row)
        return True

    def keys(self, prefix: str = "") -> builtins.list[str]:
        filters = (KeyValueORM.key.startswith(prefix),) if prefix else ()
        return [row.key for row in self.list(*filters, order_by=[KeyValueORM.key])]
