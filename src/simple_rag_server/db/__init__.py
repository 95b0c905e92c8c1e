"""
Database Package

Provides SQLAlchemy async engine/session helpers and the pgvector-backed
vector collection for PostgreSQL.
"""

from .session import create_engine, create_session_factory, create_schema
from .models import Base, VectorCollectionRecord, ChunkEmbedding
from .vector_store import PgVectorCollection, PgVectorError

__all__ = [
    "create_engine",
    "create_session_factory",
    "create_schema",
    "Base",
    "VectorCollectionRecord",
    "ChunkEmbedding",
    "PgVectorCollection",
    "PgVectorError",
]
