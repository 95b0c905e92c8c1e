"""
SQLAlchemy Models

Defines the database schema for the pgvector-backed vector collection:
- Collection records (fixed dimension and metric)
- Chunk embeddings with their JSONB payload
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from pgvector.sqlalchemy import Vector


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


# ---------------------------------------------------------------------
# Collection Model
# ---------------------------------------------------------------------

class VectorCollectionRecord(Base):
    """
    A named collection. Dimension and metric are fixed at creation.
    """
    __tablename__ = "vector_collection"

    name: Mapped[str] = mapped_column(String(128), primary_key=True)
    dimension: Mapped[int] = mapped_column(Integer, nullable=False)
    metric: Mapped[str] = mapped_column(String(16), nullable=False, default="cosine")
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
    )


# ---------------------------------------------------------------------
# Chunk Embedding Model
# ---------------------------------------------------------------------

class ChunkEmbedding(Base):
    """
    One point: a chunk's vector plus its payload.

    The vector column is declared without a fixed size so one table can
    serve collections of different dimensions.
    """
    __tablename__ = "chunk_embedding"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    collection: Mapped[str] = mapped_column(
        String(128),
        ForeignKey("vector_collection.name", ondelete="CASCADE"),
        primary_key=True,
    )
    document_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    payload: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    embedding = Column(Vector(), nullable=False)

    __table_args__ = (
        Index("idx_chunk_collection_document", "collection", "document_id"),
    )
