"""
API Models

This module defines all Pydantic models used for request/response validation
across chat, document, search and diagnostics endpoints.

Design Goals
------------
- Strong typing
- Safe defaults (no shared mutable state)
- Clear schema documentation
- Domain models stay out of the wire format
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..documents.models import Document
from ..sessions.models import Message, Session
from ..vectors.models import SearchHit


# ---------------------------------------------------------------------
# Shared
# ---------------------------------------------------------------------

class OperationResult(BaseModel):
    """
    Standardized mutation operation result.
    Used for create/delete-style endpoints.
    """
    status: Literal["deleted", "created", "ok"]
    count: Optional[int] = Field(default=None, ge=0)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")


class SourceDocument(BaseModel):
    """
    A retrieved passage as shown to API clients.
    """
    content: str
    source: str
    chunk_id: str
    score: float
    metadata: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "SourceDocument":
        return cls(
            content=hit.content,
            source=hit.source,
            chunk_id=hit.chunk_id,
            score=hit.score,
            metadata=dict(hit.metadata),
        )


# ---------------------------------------------------------------------
# Chat Models
# ---------------------------------------------------------------------

class ChatRequest(BaseModel):
    """
    Chat request payload.

    Length limits on ``message`` are enforced by the pipeline so the error
    shape matches every other validation failure.
    """
    message: str
    session_id: Optional[str] = None
    model: str = "auto"
    max_tokens: Optional[int] = Field(default=None, ge=1, le=32768)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)

    model_config = ConfigDict(extra="forbid")


class ChatResponse(BaseModel):
    answer: str
    session_id: str
    sources: List[SourceDocument] = Field(default_factory=list)
    tokens_used: int
    processing_time_ms: int
    model_used: str

    model_config = ConfigDict(extra="forbid")


class SessionCreatedResponse(BaseModel):
    session_id: str
    message: str = "New chat session created"

    model_config = ConfigDict(extra="forbid")


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_message(cls, message: Message) -> "HistoryMessage":
        return cls(**message.model_dump())


class HistoryResponse(BaseModel):
    session_id: str
    messages: List[HistoryMessage]
    message_count: int
    created_at: datetime
    last_activity: datetime

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_session(cls, session: Session) -> "HistoryResponse":
        return cls(
            session_id=session.id,
            messages=[HistoryMessage.from_message(m) for m in session.messages],
            message_count=session.message_count,
            created_at=session.created_at,
            last_activity=session.last_activity_at,
        )


# ---------------------------------------------------------------------
# Document Models
# ---------------------------------------------------------------------

class DocumentIngestRequest(BaseModel):
    """
    Already-extracted document text to chunk, embed and index.
    """
    filename: str = Field(..., min_length=1)
    text: str = Field(..., min_length=1)
    file_type: Optional[str] = None
    size_bytes: Optional[int] = Field(default=None, ge=0)
    chunk_size: Optional[int] = Field(default=None, ge=100, le=4000)
    chunk_overlap: Optional[int] = Field(default=None, ge=0, le=1000)

    model_config = ConfigDict(extra="forbid")


class DocumentIngestResponse(BaseModel):
    document: Document
    chunk_count: int
    chunk_ids: List[str]
    stored: bool
    processing_time_ms: int

    model_config = ConfigDict(extra="forbid")


class DocumentListResponse(BaseModel):
    documents: List[Document]
    total: int
    limit: int
    offset: int

    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------
# Search Models
# ---------------------------------------------------------------------

class SearchRequest(BaseModel):
    """
    Semantic search request.
    """
    query: str = Field(..., min_length=1)
    limit: int = Field(default=5, ge=1, le=100)
    threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    document_id: Optional[str] = None

    model_config = ConfigDict(extra="forbid")
