# /app/services/database_service.py

from typing import Any, Dict, Generator, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session
from fastapi import Depends

# --- Core Database Setup ---
from app.db.database import get_db

# --- Repository Imports ---
from .database_helpers.document_repository_sql import DocumentRepositorySQL, DocumentNotFoundError
from .database_helpers.value_codec import DELETE_FIELD


class Collections:
    """Names of the collections used across the application."""
    USERS = "users"
    PROGRAMS = "programs"
    CLASSROOMS = "classrooms"
    EVALUATIONS = "evaluations"
    CLASSROOM_RUNS = "classroomRuns"
    FINALIZATION_SNAPSHOTS = "finalizationSnapshots"


class DatabaseService:
    def __init__(self, db_session: Session):
        """
        Initializes the DatabaseService on top of an open SQLAlchemy session.
        All reads and writes go through the document repository.
        """
        if db_session is None:
            raise ValueError("A database session is required.")
        self.document_repo = DocumentRepositorySQL(db_session)

    # --- DOCUMENT METHODS (DELEGATED) ---
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: return self.document_repo.get_document(collection, doc_id)
    def get_documents(self, collection: str, order_by: Optional[str] = None, descending: bool = False) -> List[Dict[str, Any]]: return self.document_repo.get_documents(collection, order_by=order_by, descending=descending)
    def query_documents(self, collection: str, field: str, operator: str, value: Any) -> List[Dict[str, Any]]: return self.document_repo.query_documents(collection, field, operator, value)
    def query_documents_multi(self, collection: str, filters: Iterable[Tuple[str, str, Any]]) -> List[Dict[str, Any]]: return self.document_repo.query_documents_multi(collection, filters)
    def create_document(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str: return self.document_repo.create_document(collection, data, doc_id=doc_id)
    def update_document(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: self.document_repo.update_document(collection, doc_id, data)
    def delete_document(self, collection: str, doc_id: str) -> bool: return self.document_repo.delete_document(collection, doc_id)
    def document_exists(self, collection: str, doc_id: str) -> bool: return self.document_repo.document_exists(collection, doc_id)
    def batch_update(self, collection: str, updates: List[Dict[str, Any]]) -> None: self.document_repo.batch_update(collection, updates)
    def get_documents_paginated(self, collection: str, page_size: int, last_doc_id: Optional[str] = None) -> Tuple[List[Dict[str, Any]], bool]:
        return self.document_repo.get_documents_paginated(collection, page_size, last_doc_id=last_doc_id)


def get_db_service(db: Session = Depends(get_db)) -> Generator[DatabaseService, None, None]:
    """FastAPI dependency that provides a DatabaseService instance."""
    yield DatabaseService(db_session=db)


__all__ = ["Collections", "DatabaseService", "DocumentNotFoundError", "DELETE_FIELD", "get_db_service"]
