"""
Document Data Models

Canonical records for ingested documents and the chunks cut from them.

Each Chunk corresponds to ONE embedding vector and ONE point in the vector
index; its id is the point id.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

SUPPORTED_FILE_TYPES = ("pdf", "txt", "docx", "xlsx", "csv")


def make_chunk_id(document_id: str, index: int) -> str:
    """Deterministic point id: ``<document_id>_chunk_<index zero-padded to 3>``."""
    return f"{document_id}_chunk_{index:03d}"


class Chunk(BaseModel):
    """
    A contiguous slice of a document's text.

    This model is the authoritative schema for:
    - Vector index point payloads
    - Source attribution in chat answers
    """

    id: str = Field(..., min_length=1)
    document_id: str = Field(..., min_length=1)
    index: int = Field(..., ge=0)
    content: str = Field(..., min_length=1)
    size_chars: int = Field(..., ge=1)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
    )

    def payload(self) -> Dict[str, Any]:
        """Payload stored next to the vector in the index."""
        return {
            **self.metadata,
            "content": self.content,
            "document_id": self.document_id,
            "chunk_index": self.index,
            "chunk_size": self.size_chars,
        }


class Document(BaseModel):
    """An ingested document. Only ``status`` changes after creation."""

    id: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)
    file_type: str
    size_bytes: int = Field(..., ge=0)
    uploaded_at: datetime
    status: Literal["indexed", "chunked"] = "indexed"
    chunk_count: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid")


class ProcessingResult(BaseModel):
    """Outcome of one ingestion call."""

    document: Document
    chunks: List[Chunk]
    stored: bool
    processing_time_ms: int = Field(..., ge=0)

    model_config = ConfigDict(extra="forbid")
