"""
Generation Data Models

Provider-neutral request and result shapes for the generation orchestrator.
"""

from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class PromptMessage(BaseModel):
    """One message of a prompt, in the canonical role vocabulary."""

    role: Literal["system", "user", "assistant"]
    content: str

    model_config = ConfigDict(extra="forbid", frozen=True)


class GenerationOptions(BaseModel):
    """
    Sampling options. Unset fields fall back to the provider's defaults.

    ``model`` is ``"auto"``, ``"<provider>:<model>"``, ``"<provider>:auto"``
    or a bare model name known to the model registry.
    """

    model: str = "auto"
    max_tokens: Optional[int] = Field(default=None, ge=1)
    temperature: Optional[float] = Field(default=None, ge=0.0, le=2.0)
    top_p: Optional[float] = Field(default=None, gt=0.0, le=1.0)
    top_k: Optional[int] = Field(default=None, ge=1)
    stop_sequences: Optional[List[str]] = None
    timeout: Optional[float] = Field(default=None, gt=0)

    model_config = ConfigDict(extra="forbid")


class GenerationResult(BaseModel):
    """Normalised output of a single provider call."""

    content: str
    provider_model: str
    tokens_used: int = Field(default=0, ge=0)
    finish_reason: str = "stop"
    provider_name: str
    processing_time_ms: int = Field(default=0, ge=0)

    model_config = ConfigDict(extra="forbid")
