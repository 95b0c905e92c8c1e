"""
PostgreSQL + pgvector Vector Collection

Database-backed implementation of the vector index service contract. Points
are stored in ``chunk_embedding`` with their payload as JSONB; similarity is
cosine via pgvector's ``<=>`` operator.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncEngine

from ..core.errors import ProviderCallFailed
from ..vectors.base import COSINE
from ..vectors.models import CollectionInfo, ScoredPoint, VectorPoint
from .models import ChunkEmbedding, VectorCollectionRecord
from .session import create_schema, create_session_factory

logger = logging.getLogger("rag.vectors")


class PgVectorError(ProviderCallFailed):
    """Raised for collection-level misuse of the pgvector store."""

    def __init__(self, message: str) -> None:
        super().__init__(message, provider="pgvector")


class PgVectorCollection:
    """
    PostgreSQL-backed vector collection using pgvector for similarity search.

    This class exposes the same interface as FaissCollection; every call
    opens its own short-lived session.
    """

    def __init__(self, engine: AsyncEngine, name: str = "documents") -> None:
        """
        Parameters
        ----------
        engine : AsyncEngine
            Async engine bound to a database with the pgvector extension
            available.

        name : str
            Collection name; rows of other collections are never touched.
        """
        self.name = name
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._schema_ready = False
        self._dimension: Optional[int] = None

    async def _ensure_schema(self) -> None:
        if not self._schema_ready:
            await create_schema(self._engine)
            self._schema_ready = True

    async def _record(self) -> Optional[VectorCollectionRecord]:
        await self._ensure_schema()
        async with self._session_factory() as session:
            return await session.get(VectorCollectionRecord, self.name)

    # ------------------------------------------------------------------
    # Collection lifecycle
    # ------------------------------------------------------------------

    async def exists(self) -> bool:
        return await self._record() is not None

    async def create(self, dimension: int, metric: str = COSINE) -> None:
        if metric != COSINE:
            raise PgVectorError(f"Unsupported metric for pgvector collection: {metric}")

        await self._ensure_schema()
        async with self._session_factory() as session:
            session.add(
                VectorCollectionRecord(name=self.name, dimension=dimension, metric=metric)
            )
            await session.commit()
        self._dimension = dimension

    async def info(self) -> CollectionInfo:
        record = await self._record()
        if record is None:
            raise PgVectorError(f"Collection '{self.name}' does not exist.")
        self._dimension = record.dimension

        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ChunkEmbedding)
                .where(ChunkEmbedding.collection == self.name)
            )
            count = result.scalar() or 0

        return CollectionInfo(
            name=record.name,
            points_count=count,
            dimension=record.dimension,
            metric=record.metric,
        )

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Points
    # ------------------------------------------------------------------

    async def upsert(self, points: Sequence[VectorPoint]) -> int:
        """
        Insert or replace points with a single INSERT ... ON CONFLICT.
        """
        if not points:
            return 0

        if self._dimension is None:
            await self.info()
        for point in points:
            if len(point.vector) != self._dimension:
                raise PgVectorError(
                    f"Point {point.id} has dimension {len(point.vector)}; "
                    f"collection '{self.name}' expects {self._dimension}."
                )

        rows = [
            {
                "id": point.id,
                "collection": self.name,
                "document_id": point.payload.get("document_id"),
                "content": str(point.payload.get("content", "")),
                "payload": {k: v for k, v in point.payload.items() if k != "content"},
                "embedding": list(point.vector),
            }
            for point in points
        ]

        stmt = pg_insert(ChunkEmbedding).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ChunkEmbedding.id, ChunkEmbedding.collection],
            set_={
                "document_id": stmt.excluded.document_id,
                "content": stmt.excluded.content,
                "payload": stmt.excluded.payload,
                "embedding": stmt.excluded.embedding,
            },
        )

        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

        return len(rows)

    async def search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[ScoredPoint]:
        """
        Cosine search; rows below ``threshold`` never leave the database.
        """
        cosine_distance = ChunkEmbedding.embedding.cosine_distance(list(vector))

        stmt = (
            select(
                ChunkEmbedding.id,
                ChunkEmbedding.content,
                ChunkEmbedding.payload,
                (1 - cosine_distance).label("score"),
            )
            .where(ChunkEmbedding.collection == self.name)
            .where(cosine_distance <= 1 - threshold)
            .order_by(cosine_distance)
            .limit(limit)
        )

        if filter:
            stmt = stmt.where(ChunkEmbedding.payload.contains(filter))

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            rows = result.all()

        return [
            ScoredPoint(
                id=row.id,
                score=float(row.score),
                payload={**(row.payload or {}), "content": row.content},
            )
            for row in rows
        ]

    async def delete(
        self,
        ids: Optional[Sequence[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Remove points by id or payload filter. Returns the number of rows deleted.
        """
        stmt = delete(ChunkEmbedding).where(ChunkEmbedding.collection == self.name)

        if ids is not None:
            stmt = stmt.where(ChunkEmbedding.id.in_(list(ids)))
        elif filter:
            stmt = stmt.where(ChunkEmbedding.payload.contains(filter))
        else:
            raise PgVectorError("Delete requires ids or a filter.")

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()

        return result.rowcount or 0
