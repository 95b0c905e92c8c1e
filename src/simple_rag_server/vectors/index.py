"""
FAISS Vector Collection

This module implements an in-process, optionally persistent FAISS-backed
vector collection for storing and searching embedded document chunks.

Key Properties
--------------
- Explicit ID management via IndexIDMap2, keyed by string point ids
- Cosine similarity (inner product over L2-normalised vectors)
- Upsert semantics: writing an existing point id replaces it
- Optional persistence (index + metadata JSON), written after each mutation
- Concurrency-safe (thread locking)
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple

import faiss
import numpy as np

from ..core.errors import ProviderCallFailed
from .base import COSINE, payload_matches
from .models import CollectionInfo, ScoredPoint, VectorPoint

logger = logging.getLogger("rag.vectors")


# ---------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------

class FaissIndexError(ProviderCallFailed):
    """Base error for FAISS collection failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message, provider="faiss")


class FaissPersistenceError(FaissIndexError):
    """Raised when index persistence fails."""


# ---------------------------------------------------------------------
# FAISS Collection
# ---------------------------------------------------------------------

class FaissCollection:
    """
    Named FAISS collection with a fixed dimension and cosine metric.

    Without paths the collection lives in memory only.
    """

    def __init__(
        self,
        name: str = "documents",
        index_path: Optional[str] = None,
        meta_path: Optional[str] = None,
    ) -> None:
        """
        Parameters
        ----------
        name : str
            Collection name reported by ``info()``.

        index_path : Optional[str]
            Filesystem path to persist the FAISS index.

        meta_path : Optional[str]
            Filesystem path to persist metadata (point map, dimension, next id).
        """
        self.name = name
        self._index_path = index_path
        self._meta_path = meta_path

        self._index: Optional[faiss.IndexIDMap2] = None
        self._dimension: int = 0
        self._metric: str = COSINE
        self._points: Dict[int, Tuple[str, Dict[str, Any]]] = {}
        self._ids: Dict[str, int] = {}
        self._next_id: int = 0

        self._lock = RLock()

    @property
    def persistent(self) -> bool:
        return bool(self._index_path and self._meta_path)

    # ------------------------------------------------------------------
    # Internal Helpers
    # ------------------------------------------------------------------

    def _init_index(self, dim: int) -> None:
        base = faiss.IndexFlatIP(dim)
        self._index = faiss.IndexIDMap2(base)
        self._dimension = dim

    def _require_index(self) -> faiss.IndexIDMap2:
        if self._index is None:
            raise FaissIndexError(f"Collection '{self.name}' does not exist.")
        return self._index

    def _to_matrix(self, vectors: Sequence[Sequence[float]]) -> np.ndarray:
        for i, vec in enumerate(vectors):
            if len(vec) != self._dimension:
                raise FaissIndexError(
                    f"Vector at index {i} has dimension {len(vec)}; "
                    f"collection '{self.name}' expects {self._dimension}."
                )
        matrix = np.asarray(vectors, dtype="float32")
        faiss.normalize_L2(matrix)
        return matrix

    def _remove_internal(self, internal_ids: List[int]) -> None:
        if not internal_ids:
            return
        try:
            self._index.remove_ids(np.asarray(internal_ids, dtype="int64"))
        except Exception as exc:
            raise FaissIndexError(
                f"Failed to remove IDs from FAISS: {type(exc).__name__}"
            ) from exc
        for internal in internal_ids:
            point_id, _ = self._points.pop(internal)
            self._ids.pop(point_id, None)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def exists(self) -> bool:
        with self._lock:
            return self._index is not None

    async def create(self, dimension: int, metric: str = COSINE) -> None:
        if metric != COSINE:
            raise FaissIndexError(f"Unsupported metric for FAISS collection: {metric}")
        if dimension <= 0:
            raise FaissIndexError("Collection dimension must be positive.")

        with self._lock:
            if self._index is not None:
                raise FaissIndexError(f"Collection '{self.name}' already exists.")
            self._init_index(dimension)
            self._metric = metric
            logger.info(
                "Created FAISS collection '%s' (dimension=%d)", self.name, dimension
            )

    async def info(self) -> CollectionInfo:
        with self._lock:
            index = self._require_index()
            return CollectionInfo(
                name=self.name,
                points_count=int(index.ntotal),
                dimension=self._dimension,
                metric=self._metric,
            )

    async def upsert(self, points: Sequence[VectorPoint]) -> int:
        """
        Insert or replace points.

        A point id repeated within ``points`` keeps its last occurrence.
        New vectors are added before replaced ones are removed, so a failed
        add leaves the previous points in place. A persistent collection is
        saved after every successful write.

        Returns
        -------
        int
            Number of distinct points written.
        """
        if not points:
            return 0

        points = list({p.id: p for p in points}.values())

        with self._lock:
            index = self._require_index()
            matrix = self._to_matrix([p.vector for p in points])

            replaced = [self._ids[p.id] for p in points if p.id in self._ids]

            ids = np.arange(
                self._next_id,
                self._next_id + len(points),
                dtype="int64",
            )
            self._next_id += len(points)

            try:
                index.add_with_ids(matrix, ids)
            except Exception as exc:
                raise FaissIndexError(
                    f"Failed to add vectors to FAISS: {type(exc).__name__}"
                ) from exc

            self._remove_internal(replaced)
            for internal, point in zip(ids, points):
                self._points[int(internal)] = (point.id, dict(point.payload))
                self._ids[point.id] = int(internal)

            self.save()
            return len(points)

    async def search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[ScoredPoint]:
        """
        Return up to ``limit`` points with score >= ``threshold``, best first.
        """
        with self._lock:
            index = self._require_index()
            if index.ntotal == 0 or limit <= 0:
                return []

            q = self._to_matrix([vector])
            # A payload filter is applied after scoring, so scan everything
            k = int(index.ntotal) if filter else min(limit, int(index.ntotal))
            scores, idxs = index.search(q, k)

            results: List[ScoredPoint] = []

            for score, idx in zip(scores[0], idxs[0]):
                idx = int(idx)
                if idx == -1:
                    continue
                if float(score) < threshold:
                    break

                entry = self._points.get(idx)
                if entry is None:
                    continue

                point_id, payload = entry
                if not payload_matches(payload, filter):
                    continue

                results.append(
                    ScoredPoint(
                        id=point_id,
                        # Normalised float32 products can overshoot 1.0 slightly
                        score=min(float(score), 1.0),
                        payload=dict(payload),
                    )
                )
                if len(results) >= limit:
                    break

            return results

    async def delete(
        self,
        ids: Optional[Sequence[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Remove points by id or by payload filter.

        Returns
        -------
        int
            Number of removed points.
        """
        with self._lock:
            if self._index is None:
                return 0

            if ids is not None:
                internal_ids = [self._ids[i] for i in dict.fromkeys(ids) if i in self._ids]
            elif filter:
                internal_ids = [
                    internal
                    for internal, (_, payload) in self._points.items()
                    if payload_matches(payload, filter)
                ]
            else:
                raise FaissIndexError("Delete requires ids or a filter.")

            self._remove_internal(internal_ids)
            if internal_ids:
                self.save()
            return len(internal_ids)

    async def close(self) -> None:
        if self.persistent:
            self.save()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self) -> None:
        """
        Persist both FAISS index and metadata to disk.
        """
        if not self.persistent:
            return

        with self._lock:
            if self._index is None:
                return

            index_path = Path(self._index_path)
            meta_path = Path(self._meta_path)

            index_path.parent.mkdir(parents=True, exist_ok=True)

            try:
                faiss.write_index(self._index, str(index_path))
            except Exception as exc:
                raise FaissPersistenceError(
                    f"Failed to write FAISS index: {type(exc).__name__}"
                ) from exc

            meta = {
                "name": self.name,
                "dimension": self._dimension,
                "metric": self._metric,
                "next_id": self._next_id,
                "points": {
                    str(internal): {"id": point_id, "payload": payload}
                    for internal, (point_id, payload) in self._points.items()
                },
            }

            try:
                meta_path.parent.mkdir(parents=True, exist_ok=True)
                with meta_path.open("w", encoding="utf-8") as f:
                    json.dump(meta, f)
            except (OSError, TypeError, ValueError) as exc:
                raise FaissPersistenceError(
                    f"Failed to write FAISS metadata: {type(exc).__name__}"
                ) from exc

    def load(self) -> bool:
        """
        Load index and metadata from disk if available.

        Returns
        -------
        bool
            True when a persisted collection was loaded.
        """
        if not self.persistent:
            return False

        with self._lock:
            index_path = Path(self._index_path)
            meta_path = Path(self._meta_path)

            if not index_path.exists() or not meta_path.exists():
                return False

            try:
                index = faiss.read_index(str(index_path))
            except Exception as exc:
                raise FaissPersistenceError(
                    f"Failed to read FAISS index: {type(exc).__name__}"
                ) from exc

            try:
                with meta_path.open("r", encoding="utf-8") as f:
                    data = json.load(f)

                points = {
                    int(k): (v["id"], dict(v.get("payload", {})))
                    for k, v in data.get("points", {}).items()
                }
                dimension = int(data["dimension"])
                metric = data.get("metric", COSINE)
                next_id = int(data.get("next_id", 0))
            except (OSError, ValueError, KeyError, TypeError) as exc:
                raise FaissPersistenceError(
                    f"Failed to load FAISS metadata: {type(exc).__name__}"
                ) from exc

            self._index = index
            self._dimension = dimension
            self._metric = metric
            self._next_id = next_id
            self._points = points
            self._ids = {point_id: internal for internal, (point_id, _) in points.items()}

            logger.info(
                "Loaded FAISS collection '%s' (%d points)", self.name, index.ntotal
            )
            return True
