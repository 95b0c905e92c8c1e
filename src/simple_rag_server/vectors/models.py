"""
Vector Store Data Models

Wire shapes exchanged with the vector index service, and the SearchHit
returned to the rest of the application.
"""

from __future__ import annotations

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class VectorPoint(BaseModel):
    """A point to upsert: id, vector and payload."""

    id: str = Field(..., min_length=1)
    vector: List[float] = Field(..., min_length=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)


class ScoredPoint(BaseModel):
    """A point returned by an index search, already filtered by threshold."""

    id: str
    score: float
    payload: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)


class CollectionInfo(BaseModel):
    name: str
    points_count: int = Field(..., ge=0)
    dimension: int = Field(..., ge=1)
    metric: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class SearchHit(BaseModel):
    """
    A retrieved passage.

    ``score`` is cosine similarity and is never below the threshold the
    search was issued with.
    """

    chunk_id: str
    content: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", "Unknown"))
