"""
Vector Store Gateway

Mediates every interaction with the vector index service. It owns collection
bootstrap, batches writes, enforces the similarity threshold on reads and
applies the failure policy:

- search failures degrade to an empty result (logged as a warning)
- upsert and delete failures propagate to the caller
- a dimension or metric mismatch with an existing collection is fatal
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import (
    ConfigurationFatal,
    ProviderCallFailed,
    ProviderUnavailable,
    ValidationFailed,
)
from ..documents.models import Chunk
from ..embeddings.models import EmbeddingVector
from .base import COSINE, VectorCollection
from .models import SearchHit, VectorPoint

logger = logging.getLogger("rag.vectors")


class VectorStoreError(ProviderCallFailed):
    """Raised when a write against the vector index fails."""


class VectorStoreGateway:
    """
    Gateway over a single VectorCollection.

    Parameters
    ----------
    collection : VectorCollection
        The index service (FAISS or pgvector).

    dimension : int
        Embedding dimension the collection must have.

    metric : str
        Similarity metric the collection must use.

    batch_size : int
        Points per upsert round.
    """

    def __init__(
        self,
        collection: VectorCollection,
        dimension: int,
        metric: str = COSINE,
        batch_size: int = 100,
    ) -> None:
        self._collection = collection
        self.dimension = dimension
        self.metric = metric
        self.batch_size = batch_size
        self._ready = False

    @property
    def collection_name(self) -> str:
        return self._collection.name

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    async def initialize(self) -> bool:
        """
        Ensure the collection exists with the configured dimension and metric.

        Returns
        -------
        bool
            Whether the gateway is ready.

        Raises
        ------
        ConfigurationFatal
            If an existing collection has another dimension or metric.
        """
        try:
            if not await self._collection.exists():
                await self._collection.create(self.dimension, self.metric)
                logger.info(
                    "Created vector collection '%s' (dimension=%d, metric=%s)",
                    self.collection_name,
                    self.dimension,
                    self.metric,
                )
            else:
                info = await self._collection.info()
                if info.dimension != self.dimension or info.metric != self.metric:
                    raise ConfigurationFatal(
                        f"Vector collection '{info.name}' has dimension "
                        f"{info.dimension} ({info.metric}); embeddings are "
                        f"configured for {self.dimension} ({self.metric})."
                    )
        except ConfigurationFatal:
            raise
        except Exception as exc:
            logger.warning(
                "Vector store initialisation failed, running without retrieval: %s",
                exc,
            )
            self._ready = False
            return False

        self._ready = True
        return True

    def is_available(self) -> bool:
        return self._ready

    def _require_ready(self) -> None:
        if not self._ready:
            raise ProviderUnavailable("Vector store is not available.")

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def upsert(
        self,
        chunks: Sequence[Chunk],
        vectors: Sequence[EmbeddingVector],
    ) -> int:
        """
        Store chunks with their vectors, ``batch_size`` points per round.

        Each round is awaited before the next starts, bounding in-flight
        writes to one batch.

        Returns
        -------
        int
            Number of points written.

        Raises
        ------
        ValidationFailed
            If chunk and vector counts differ.

        ConfigurationFatal
            If a vector's length differs from the configured dimension.

        VectorStoreError
            If the index rejects a batch.
        """
        if len(chunks) != len(vectors):
            raise ValidationFailed(
                f"Got {len(chunks)} chunks but {len(vectors)} vectors."
            )
        if not chunks:
            return 0

        self._require_ready()

        points: List[VectorPoint] = []
        for chunk, vector in zip(chunks, vectors):
            if vector.dimension != self.dimension:
                raise ConfigurationFatal(
                    f"Vector for chunk {chunk.id} has dimension {vector.dimension}; "
                    f"collection expects {self.dimension}."
                )
            points.append(
                VectorPoint(id=chunk.id, vector=vector.values, payload=chunk.payload())
            )

        written = 0
        for start in range(0, len(points), self.batch_size):
            batch = points[start : start + self.batch_size]
            try:
                written += await self._collection.upsert(batch)
            except Exception as exc:
                logger.error(
                    "Vector upsert failed at batch starting %d (%d points): %s",
                    start,
                    len(batch),
                    exc,
                )
                raise VectorStoreError(
                    f"Vector upsert failed: {type(exc).__name__}",
                    provider=self.collection_name,
                ) from exc

        logger.info("Upserted %d points into '%s'", written, self.collection_name)
        return written

    async def delete(
        self,
        chunk_ids: Optional[Sequence[str]] = None,
        document_id: Optional[str] = None,
    ) -> int:
        """
        Delete points by chunk id or every chunk of a document.

        Exactly one selector must be given.
        """
        if (chunk_ids is None) == (document_id is None):
            raise ValidationFailed("Specify exactly one of chunk_ids or document_id.")

        self._require_ready()

        try:
            if chunk_ids is not None:
                if not chunk_ids:
                    return 0
                removed = await self._collection.delete(ids=list(chunk_ids))
            else:
                removed = await self._collection.delete(
                    filter={"document_id": document_id}
                )
        except Exception as exc:
            logger.error("Vector delete failed: %s", exc)
            raise VectorStoreError(
                f"Vector delete failed: {type(exc).__name__}",
                provider=self.collection_name,
            ) from exc

        logger.info("Deleted %d points from '%s'", removed, self.collection_name)
        return removed

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def search(
        self,
        query_vector: Sequence[float],
        limit: int,
        threshold: float,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[SearchHit]:
        """
        Nearest-neighbour search.

        Hits are returned in the index's ranking order; any hit scoring below
        ``threshold`` is dropped. Index errors are logged and yield ``[]``.
        """
        self._require_ready()

        try:
            points = await self._collection.search(
                query_vector, limit, threshold, filter
            )
        except Exception as exc:
            logger.warning("Vector search failed, returning no results: %s", exc)
            return []

        hits: List[SearchHit] = []
        for point in points:
            if point.score < threshold:
                continue
            payload = dict(point.payload)
            content = str(payload.pop("content", ""))
            hits.append(
                SearchHit(
                    chunk_id=point.id,
                    content=content,
                    score=point.score,
                    metadata={**payload, "chunk_id": point.id, "score": point.score},
                )
            )
        return hits[:limit]

    async def stats(self) -> Dict[str, Any]:
        self._require_ready()
        try:
            info = await self._collection.info()
        except Exception as exc:
            raise VectorStoreError(
                f"Vector stats failed: {type(exc).__name__}",
                provider=self.collection_name,
            ) from exc
        return {
            "collection": info.name,
            "count": info.points_count,
            "dimension": info.dimension,
            "metric": info.metric,
        }

    async def health_check(self) -> bool:
        if not self._ready:
            return False
        try:
            await self._collection.info()
        except Exception as exc:
            logger.warning("Vector store health check failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        await self._collection.close()
