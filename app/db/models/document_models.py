# /app/db/models/document_models.py

"""
This module defines the single SQLAlchemy model behind the document store.

Every entity of the application (users, programs, classrooms, evaluations,
classroom runs and finalization snapshots) is persisted as one row here: the
`collection` column plays the role of a Firestore collection and `data` holds
the document body as JSON. Nested objects and arrays are stored as-is.
"""

from sqlalchemy import Column, String, JSON, DateTime, Index
from sqlalchemy.sql import func

from ..base_class import Base


class Document(Base):
    # Document ids are unique per collection, as in Firestore.
    collection = Column(String, primary_key=True, index=True)
    id = Column(String, primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_documents_collection_created", "collection", "created_at"),
    )
