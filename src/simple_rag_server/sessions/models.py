"""
Session Data Models
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """
    Single turn in a conversation. Immutable once appended.

    Assistant messages carry ``provider``, ``provider_model``,
    ``tokens_used`` and ``source_count`` in their metadata.
    """

    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime
    metadata: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid", frozen=True)


class Session(BaseModel):
    """A conversation and its bounded history, oldest message first."""

    id: str = Field(..., min_length=1)
    created_at: datetime
    last_activity_at: datetime
    messages: List[Message] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @property
    def message_count(self) -> int:
        return len(self.messages)
