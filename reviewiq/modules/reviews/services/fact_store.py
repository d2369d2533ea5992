# reviewiq/modules/reviews/services/fact_store.py

"""
Document-shaped access to review facts.

The pipeline and the aggregator only ever see plain dict documents keyed by
opaque IDs. Queries are a list of equality predicates plus at most one
inclusive range predicate; there are no joins and no cross-document
transactions. Every operation runs in its own short session, so each
document write is atomic on its own.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Type

from sqlalchemy import inspect, select, update as sql_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from reviewiq.core.database import Base
from reviewiq.core.exceptions import DuplicateError, StoreError
from reviewiq.modules.reviews.models.review_models import (
    AuditLog, Branch, Response, Review
)

logger = logging.getLogger(__name__)

REVIEWS = "reviews"
BRANCHES = "branches"
RESPONSES = "responses"
AUDIT_LOGS = "audit_logs"


@dataclass(frozen=True)
class Equals:
    """field == value"""
    field: str
    value: Any


@dataclass(frozen=True)
class Between:
    """start <= field <= end; either bound may be omitted"""
    field: str
    start: Optional[Any] = None
    end: Optional[Any] = None


class FactStore(ABC):
    """Narrow document-store contract consumed by the core"""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    def add(self, collection: str, doc: Dict[str, Any]) -> str:
        """Insert a document; raises DuplicateError on a unique-key collision"""

    @abstractmethod
    def update(
        self,
        collection: str,
        doc_id: str,
        partial: Dict[str, Any],
        expect: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Apply a partial update.

        When expect is given the update only happens if every listed field
        still holds the expected value. Returns False if the document is
        missing or the precondition did not hold.
        """

    @abstractmethod
    def query(
        self,
        collection: str,
        where: Sequence[Equals] = (),
        within: Optional[Between] = None,
    ) -> List[Dict[str, Any]]:
        ...


class SQLAlchemyFactStore(FactStore):
    """Fact store backed by the ORM models of the reviews module"""

    COLLECTIONS: Dict[str, Type[Base]] = {
        REVIEWS: Review,
        BRANCHES: Branch,
        RESPONSES: Response,
        AUDIT_LOGS: AuditLog,
    }

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        model = self._model(collection)
        try:
            with self.session_factory() as db:
                row = db.get(model, doc_id)
                return self._to_document(row) if row is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Store read failed for {collection}/{doc_id}: {e}")
            raise StoreError(f"Failed to read {collection}/{doc_id}") from e

    def add(self, collection: str, doc: Dict[str, Any]) -> str:
        model = self._model(collection)
        self._check_fields(model, doc.keys())

        values = dict(doc)
        doc_id = values.get("id") or uuid.uuid4().hex
        values["id"] = doc_id

        try:
            with self.session_factory() as db:
                db.add(model(**values))
                db.commit()
        except IntegrityError as e:
            logger.warning(f"Store rejected duplicate in {collection}: {e.orig}")
            raise DuplicateError(f"Document conflicts with an existing {collection} entry") from e
        except SQLAlchemyError as e:
            logger.error(f"Store write failed for {collection}: {e}")
            raise StoreError(f"Failed to write to {collection}") from e

        return doc_id

    def update(
        self,
        collection: str,
        doc_id: str,
        partial: Dict[str, Any],
        expect: Optional[Dict[str, Any]] = None,
    ) -> bool:
        model = self._model(collection)
        if not partial:
            raise ValueError("Update requires at least one field")
        self._check_fields(model, partial.keys())
        self._check_fields(model, (expect or {}).keys())

        statement = sql_update(model).where(model.id == doc_id)
        for field, expected in (expect or {}).items():
            statement = statement.where(getattr(model, field) == expected)
        statement = statement.values(**partial).execution_options(
            synchronize_session=False
        )

        try:
            with self.session_factory() as db:
                result = db.execute(statement)
                db.commit()
                return result.rowcount == 1
        except SQLAlchemyError as e:
            logger.error(f"Store update failed for {collection}/{doc_id}: {e}")
            raise StoreError(f"Failed to update {collection}/{doc_id}") from e

    def query(
        self,
        collection: str,
        where: Sequence[Equals] = (),
        within: Optional[Between] = None,
    ) -> List[Dict[str, Any]]:
        model = self._model(collection)
        fields = [predicate.field for predicate in where]
        if within is not None:
            fields.append(within.field)
        self._check_fields(model, fields)

        statement = select(model)
        for predicate in where:
            statement = statement.where(getattr(model, predicate.field) == predicate.value)
        if within is not None:
            column = getattr(model, within.field)
            if within.start is not None:
                statement = statement.where(column >= within.start)
            if within.end is not None:
                statement = statement.where(column <= within.end)

        try:
            with self.session_factory() as db:
                rows = db.execute(statement).scalars().all()
                return [self._to_document(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Store query failed for {collection}: {e}")
            raise StoreError(f"Failed to query {collection}") from e

    # Private helper methods

    def _model(self, collection: str) -> Type[Base]:
        try:
            return self.COLLECTIONS[collection]
        except KeyError:
            raise ValueError(f"Unknown collection: {collection}")

    @staticmethod
    def _columns(model: Type[Base]) -> List[str]:
        return [attr.key for attr in inspect(model).column_attrs]

    def _check_fields(self, model: Type[Base], fields) -> None:
        unknown = set(fields) - set(self._columns(model))
        if unknown:
            raise ValueError(
                f"Unknown field(s) for {model.__tablename__}: {', '.join(sorted(unknown))}"
            )

    def _to_document(self, row) -> Dict[str, Any]:
        return {key: getattr(row, key) for key in self._columns(type(row))}
