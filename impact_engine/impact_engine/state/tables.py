"""SQLAlchemy 2.0 ORM table definitions for the document store.

The impact engine only ever reads these tables.  They mirror the schema of
the document-processing system: documents and the artifacts produced from
them by asynchronous processing jobs.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Shared declarative base for all document store tables."""


# ---------------------------------------------------------------------------
# Documents and owned artifacts
# ---------------------------------------------------------------------------


class DocumentTable(Base):
    """Uploaded or ingested source documents."""

    __tablename__ = "documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    realm_id: Mapped[str] = mapped_column(String(64), nullable=False, default="default")
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)


class DocumentChunkTable(Base):
    """Text chunks split from a document."""

    __tablename__ = "document_chunks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)
    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    __table_args__ = (Index("ix_document_chunks_document_id", "document_id"),)


class EmbeddingTable(Base):
    """Vector embeddings owned by a document, optionally computed from a chunk."""

    __tablename__ = "embeddings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)
    chunk_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("document_chunks.id"), nullable=True)
    model_name: Mapped[str] = mapped_column(String(128), nullable=False, default="default")

    __table_args__ = (
        Index("ix_embeddings_document_id", "document_id"),
        Index("ix_embeddings_chunk_id", "chunk_id"),
    )


class FactTable(Base):
    """Subject/predicate/object facts extracted from a document."""

    __tablename__ = "facts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)
    subject: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    predicate: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    object_: Mapped[str] = mapped_column("object", Text, nullable=False, default="")

    __table_args__ = (Index("ix_facts_document_id", "document_id"),)


class QualityScoreTable(Base):
    """Quality scores computed from a document or one of its embeddings."""

    __tablename__ = "quality_scores"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("documents.id"), nullable=True)
    embedding_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("embeddings.id"), nullable=True)
    score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


# ---------------------------------------------------------------------------
# Knowledge graph entities and cross-document links
# ---------------------------------------------------------------------------


class EntityTable(Base):
    """Knowledge-graph entities mentioned across documents."""

    __tablename__ = "entities"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(512), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_orphaned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class DocumentEntityTable(Base):
    """Link between a document and an entity it mentions."""

    __tablename__ = "document_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), ForeignKey("entities.id"), nullable=False)

    __table_args__ = (UniqueConstraint("document_id", "entity_id", name="uq_document_entity"),)


class DocumentReferenceTable(Base):
    """``source_document_id`` cites ``target_document_id``."""

    __tablename__ = "document_references"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)
    target_document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)

    __table_args__ = (Index("ix_document_references_target", "target_document_id"),)


class ProcessingJobTable(Base):
    """Asynchronous processing jobs run against a document."""

    __tablename__ = "processing_jobs"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    document_id: Mapped[str] = mapped_column(String(64), ForeignKey("documents.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, nullable=False)
