"""Thin keyed record store over a SQLAlchemy session."""
import logging
from typing import Any, Dict, Optional, Type, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from labelprint.services.errors import ConstraintViolation, NotFound, ProviderError

log = logging.getLogger(__name__)

Model = TypeVar("Model")


class StoreError(ProviderError):
    """The record store rejected or failed a query."""


class RecordStore:
    """
    find_one / insert / update / delete keyed by primary key or exact match.

    Every write commits immediately; a failed write is rolled back and
    re-raised as StoreError (or ConstraintViolation for integrity errors), so
    callers never see a raw SQLAlchemy exception.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_one(self, model: Type[Model], **criteria: Any) -> Optional[Model]:
        try:
            return self.db.query(model).filter_by(**criteria).one_or_none()
        except SQLAlchemyError as e:
            log.error("find_one on %s failed: %s", model.__tablename__, e)
            raise StoreError(str(e)) from e

    def get(self, model: Type[Model], key: Any) -> Optional[Model]:
        try:
            return self.db.get(model, key)
        except SQLAlchemyError as e:
            log.error("get on %s failed: %s", model.__tablename__, e)
            raise StoreError(str(e)) from e

    def insert(self, record: Model) -> Model:
        self.db.add(record)
        self._commit(record.__tablename__)
        self.db.refresh(record)
        return record

    def update(self, model: Type[Model], key: Any, fields: Dict[str, Any]) -> Model:
        record = self.get(model, key)
        if record is None:
            raise NotFound(f"{model.__name__} {key} not found")
        for name, value in fields.items():
            setattr(record, name, value)
        self._commit(model.__tablename__)
        self.db.refresh(record)
        return record

    def delete(self, model: Type[Model], key: Any) -> bool:
        """Delete by key. Returns False when there was nothing to delete."""
        record = self.get(model, key)
        if record is None:
            return False
        self.db.delete(record)
        self._commit(model.__tablename__)
        return True

    def _commit(self, table: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            log.warning("Integrity error writing %s: %s", table, e.orig)
            raise ConstraintViolation(str(e.orig)) from e
        except SQLAlchemyError as e:
            self.db.rollback()
            log.error("Write to %s failed: %s", table, e)
            raise StoreError(str(e)) from e
