# /app/services/database_helpers/document_repository_sql.py

"""
This module contains all the raw SQLAlchemy queries for the document store.

It gives the rest of the application a Firestore-shaped interface: documents
are addressed by collection name and document id, bodies are free-form
nested dictionaries, and reads always come back as `{"id": ..., **data}` with
timestamps already converted to `datetime` objects.

Filtering on document fields happens in Python after the collection has been
loaded, which keeps the queries portable between SQLite and PostgreSQL JSON
columns.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.db.models.document_models import Document
from .value_codec import DELETE_FIELD, encode_value, decode_value

logger = logging.getLogger(__name__)

_MISSING = object()

SUPPORTED_OPERATORS = ("==", "!=", "in", "array-contains")


class DocumentNotFoundError(ValueError):
    """Raised when an update targets a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"Document {doc_id} not found in {collection}")
        self.collection = collection
        self.doc_id = doc_id


def _new_document_id() -> str:
    return uuid.uuid4().hex[:20]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_path(document: Dict[str, Any], field: str) -> Any:
    """Walks a dotted field path (`scores.attendance`) through nested dicts."""
    current: Any = document
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _matches(document: Dict[str, Any], field: str, operator: str, value: Any) -> bool:
    actual = _resolve_path(document, field)
    if operator == "==":
        return actual is not _MISSING and actual == value
    if operator == "!=":
        return actual is not _MISSING and actual != value
    if operator == "in":
        return actual is not _MISSING and actual in value
    if operator == "array-contains":
        return isinstance(actual, list) and value in actual
    raise ValueError(f"Unsupported query operator: {operator}")


def _sort_key(field: str):
    def key(document: Dict[str, Any]):
        value = _resolve_path(document, field)
        missing = value is _MISSING or value is None
        return (missing, value if not missing else 0)
    return key


def _apply_update(data: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merges `updates` into a copy of `data`. Dotted keys address nested fields
    and DELETE_FIELD removes the addressed field.
    """
    merged = decode_value(encode_value(data))
    for key, value in updates.items():
        parts = key.split(".")
        target = merged
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    target = None
                    break
                child = {}
                target[part] = child
            target = child
        if target is None:
            continue
        if value is DELETE_FIELD:
            target.pop(parts[-1], None)
        else:
            target[parts[-1]] = value
    return merged


class DocumentRepositorySQL:
    def __init__(self, db_session: Session):
        self.db = db_session

    # --- Internal helpers ---

    def _get_row(self, collection: str, doc_id: str) -> Optional[Document]:
        return (
            self.db.query(Document)
            .filter(Document.collection == collection, Document.id == doc_id)
            .first()
        )

    def _load_collection(self, collection: str) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(Document)
            .filter(Document.collection == collection)
            .order_by(Document.created_at.asc(), Document.id.asc())
            .all()
        )
        return [self._to_dict(row) for row in rows]

    @staticmethod
    def _to_dict(row: Document) -> Dict[str, Any]:
        return {**decode_value(row.data or {}), "id": row.id}

    # --- Reads ---

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetches a single document, or None when it does not exist."""
        if not doc_id:
            return None
        row = self._get_row(collection, doc_id)
        return self._to_dict(row) if row else None

    def get_documents(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Lists a whole collection, optionally ordered by a (dotted) field."""
        documents = self._load_collection(collection)
        if order_by:
            documents.sort(key=_sort_key(order_by), reverse=descending)
        return documents

    def query_documents(self, collection: str, field: str, operator: str, value: Any) -> List[Dict[str, Any]]:
        """Returns the documents whose `field` satisfies `operator` against `value`."""
        return self.query_documents_multi(collection, [(field, operator, value)])

    def query_documents_multi(
        self,
        collection: str,
        filters: Iterable[Tuple[str, str, Any]],
    ) -> List[Dict[str, Any]]:
        """Applies several filters joined with AND."""
        filters = list(filters)
        for _, operator, _ in filters:
            if operator not in SUPPORTED_OPERATORS:
                raise ValueError(f"Unsupported query operator: {operator}")
        return [
            document for document in self._load_collection(collection)
            if all(_matches(document, field, op, value) for field, op, value in filters)
        ]

    def document_exists(self, collection: str, doc_id: str) -> bool:
        return self._get_row(collection, doc_id) is not None

    def get_documents_paginated(
        self,
        collection: str,
        page_size: int,
        last_doc_id: Optional[str] = None,
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Pages through a collection ordered by `createdAt`. `last_doc_id` is the
        id of the final document of the previous page.
        """
        documents = self.get_documents(collection, order_by="createdAt")
        start = 0
        if last_doc_id:
            for index, document in enumerate(documents):
                if document["id"] == last_doc_id:
                    start = index + 1
                    break
        page = documents[start:start + page_size + 1]
        has_more = len(page) > page_size
        return page[:page_size], has_more

    # --- Writes ---

    def create_document(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Creates a document and returns its id. `createdAt` and `updatedAt`
        are always stamped by the store.
        """
        new_id = doc_id or _new_document_id()
        now = _utcnow()
        body = {k: v for k, v in data.items() if k != "id" and v is not DELETE_FIELD}
        body["createdAt"] = now
        body["updatedAt"] = now

        row = Document(
            collection=collection,
            id=new_id,
            data=encode_value(body),
            created_at=now,
            updated_at=now,
        )
        self.db.add(row)
        self.db.commit()
        logger.debug("Created %s/%s", collection, new_id)
        return new_id

    def update_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Partially updates a document. The document must already exist."""
        row = self._get_row(collection, doc_id)
        if row is None:
            raise DocumentNotFoundError(collection, doc_id)

        now = _utcnow()
        updates = {k: v for k, v in data.items() if k != "id"}
        updates["updatedAt"] = now
        merged = _apply_update(decode_value(row.data or {}), updates)

        # Assigning a fresh object lets SQLAlchemy detect the JSON change.
        row.data = encode_value(merged)
        row.updated_at = now
        self.db.commit()
        logger.debug("Updated %s/%s (%s)", collection, doc_id, ", ".join(sorted(updates)))

    def delete_document(self, collection: str, doc_id: str) -> bool:
        row = self._get_row(collection, doc_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.commit()
        logger.debug("Deleted %s/%s", collection, doc_id)
        return True

    def batch_update(self, collection: str, updates: List[Dict[str, Any]]) -> None:
        """
        Applies `[{"id": ..., "data": {...}}, ...]` one document at a time.
        This is not transactional: a failure leaves earlier updates in place.
        """
        for update in updates:
            self.update_document(collection, update["id"], update["data"])
