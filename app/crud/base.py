import enum
import uuid
from contextlib import contextmanager
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import BackendUnavailableError
from app.core.logging_config import logger
from app.crud.subscriptions import (
    Document,
    SnapshotCallback,
    Subscription,
    SubscriptionHub,
    matches_filters,
)
from app.models.document import DocumentRecord


def _text(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


class DocumentStore:
    """
    Document store over a SQLAlchemy session.

    Documents are camelCase field bags addressed by (collection, id). Writes
    have upsert/merge semantics and each one commits on its own: there is no
    multi-document transaction, so a failing batch leaves the successful
    prefix applied.

    Args:
        db: Database session (request scoped)
        hub: Subscription hub notified after every write; optional
    """

    def __init__(self, db: Session, hub: Optional[SubscriptionHub] = None):
        self.db = db
        self.hub = hub

    @contextmanager
    def _guard(self, action: str):
        try:
            yield
        except OperationalError as e:
            self.db.rollback()
            logger.error(f"Document store unavailable during {action}: {str(e)}")
            raise BackendUnavailableError(f"Document store unavailable during {action}") from e
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def get(self, collection: str, id: str) -> Optional[Document]:
        """
        Retrieve a single document.

        Args:
            collection: Collection name
            id: Document ID

        Returns:
            Document dict (with ``id``) or None if not found
        """
        with self._guard(f"get {collection}/{id}"):
            record = self.db.get(DocumentRecord, (collection, id))
            return record.to_dict() if record else None

    def _sql_filters(self, filters: Optional[Dict[str, Any]]) -> list:
        """
        Translate text-valued filters into JSON path predicates.

        Other values (None, numbers, booleans) are left to ``matches_filters``
        after the rows are loaded, since a missing field and a JSON null must
        both match ``None``.
        """
        clauses = []
        for field, expected in (filters or {}).items():
            column = DocumentRecord.id if field == "id" else DocumentRecord.data[field].as_string()
            if isinstance(expected, (list, tuple, set, frozenset)):
                values = [_text(value) for value in expected]
                if values and all(isinstance(value, str) for value in values):
                    clauses.append(column.in_(values))
            elif isinstance(_text(expected), str):
                clauses.append(column == _text(expected))
        return clauses

    def query(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> List[Document]:
        """
        One-shot read of every document in a collection matching ``filters``.

        Args:
            collection: Collection name
            filters: Field equality filters; list values mean "one of"

        Returns:
            Matching documents ordered by creation time
        """
        with self._guard(f"query {collection}"):
            stmt = select(DocumentRecord).where(
                DocumentRecord.collection == collection,
                *self._sql_filters(filters),
            ).order_by(DocumentRecord.created_at, DocumentRecord.id)
            records = self.db.execute(stmt).scalars().all()
            documents = [record.to_dict() for record in records]
        return [doc for doc in documents if matches_filters(doc, filters)]

    def create(self, collection: str, fields: Dict[str, Any], id: Optional[str] = None) -> Document:
        """
        Insert a new document under a generated ID.

        Returns:
            The stored document including its ``id``
        """
        doc_id = id or uuid.uuid4().hex
        return self.write(collection, doc_id, fields)

    def _apply(self, collection: str, id: str, fields: Dict[str, Any]) -> Document:
        fields = {k: v for k, v in fields.items() if k != "id"}
        record = self.db.get(DocumentRecord, (collection, id))
        if record is None:
            record = DocumentRecord(collection=collection, id=id, data=fields)
        else:
            # Reassign so the JSON column is flagged dirty
            record.data = {**(record.data or {}), **fields}
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record.to_dict()

    def write(self, collection: str, id: str, fields: Dict[str, Any]) -> Document:
        """
        Upsert ``fields`` into a document; ``None`` values null the field.

        Returns:
            The document after the merge
        """
        with self._guard(f"write {collection}/{id}"):
            document = self._apply(collection, id, fields)
        self._publish(collection)
        return document

    def write_many(self, collection: str, updates: Dict[str, Dict[str, Any]]) -> List[Document]:
        """
        Best-effort batch of independent writes, published once at the end.

        Each write commits on its own. If one fails, the ones before it stay
        applied, subscribers are still told about them and the error is
        re-raised to the caller.
        """
        written = []
        try:
            for doc_id, fields in updates.items():
                with self._guard(f"write {collection}/{doc_id}"):
                    written.append(self._apply(collection, doc_id, fields))
        finally:
            if written:
                self._publish(collection)
        return written

    def delete(self, collection: str, id: str) -> bool:
        """
        Delete a document.

        Returns:
            True if a document was removed
        """
        with self._guard(f"delete {collection}/{id}"):
            record = self.db.get(DocumentRecord, (collection, id))
            if record is None:
                return False
            self.db.delete(record)
            self.db.commit()
        self._publish(collection)
        return True

    def subscribe(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        callback: Optional[SnapshotCallback] = None,
    ) -> Subscription:
        """
        Subscribe to snapshots of a collection; the first one is delivered
        immediately. A failed initial read yields an empty snapshot.
        """
        if self.hub is None:
            raise RuntimeError("DocumentStore was created without a subscription hub")
        try:
            snapshot = self.query(collection)
        except BackendUnavailableError as e:
            logger.error(f"Initial snapshot failed for {collection}: {e.detail}")
            snapshot = []
        return self.hub.subscribe(collection, snapshot, filters=filters, callback=callback)

    def _publish(self, collection: str) -> None:
        if self.hub is None or not self.hub.has_subscribers(collection):
            return
        loader: Callable[[], List[Document]] = lambda: self.query(collection)
        self.hub.publish(collection, loader)
