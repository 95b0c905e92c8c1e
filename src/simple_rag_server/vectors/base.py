"""
Vector index service contract.

Both the in-process FAISS collection and the PostgreSQL/pgvector collection
implement this protocol; the gateway only talks to it.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .models import CollectionInfo, ScoredPoint, VectorPoint

COSINE = "cosine"


@runtime_checkable
class VectorCollection(Protocol):
    name: str

    async def exists(self) -> bool: ...

    async def create(self, dimension: int, metric: str = COSINE) -> None: ...

    async def info(self) -> CollectionInfo: ...

    async def upsert(self, points: Sequence[VectorPoint]) -> int: ...

    async def search(
        self,
        vector: Sequence[float],
        limit: int,
        threshold: float,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[ScoredPoint]: ...

    async def delete(
        self,
        ids: Optional[Sequence[str]] = None,
        filter: Optional[Dict[str, Any]] = None,
    ) -> int: ...

    async def close(self) -> None: ...


def payload_matches(payload: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    """Equality match of every filter key against the payload."""
    if not filter:
        return True
    return all(payload.get(key) == value for key, value in filter.items())
