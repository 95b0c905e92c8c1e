"""
Embedding Data Models
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EmbeddingVector(BaseModel):
    """
    One embedding produced by the gateway.

    ``chunk_id`` is unset for query embeddings and bound when the vector is
    paired with a chunk for upsert.
    """

    values: List[float] = Field(..., min_length=1)
    provider_model: str
    chunk_id: Optional[str] = None

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    @property
    def dimension(self) -> int:
        return len(self.values)
