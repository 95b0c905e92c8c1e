"""
RAG Pipeline

Answers a user message for a session by retrieving relevant passages and
conditioning the LLM on them.

Major Responsibilities
----------------------
1. Validate the message before any side effect.
2. Resolve or create the session and record the user message.
3. Retrieve passages (skipped when embeddings or the vector store are
   unavailable).
4. Assemble the prompt: grounded system prompt, recent history, question.
5. Generate, substituting a fixed apology when generation fails.
6. Record the assistant message and return the answer with its sources,
   even when the session was deleted while generating.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..config import Settings, settings as default_settings
from ..core.errors import (
    ProviderCallFailed,
    ProviderUnavailable,
    SessionNotFound,
    ValidationFailed,
)
from ..embeddings.embedder import Embedder
from ..llm.models import GenerationOptions, PromptMessage
from ..llm.orchestrator import GenerationOrchestrator
from ..prompts import FALLBACK_ANSWER, build_system_prompt
from ..sessions.models import Message, Session
from ..sessions.store import SessionStore
from ..stats.usage import UsageStats
from ..vectors.gateway import VectorStoreGateway
from ..vectors.models import SearchHit

logger = logging.getLogger("rag.pipeline")

FALLBACK_MODEL = "fallback"
FALLBACK_PROVIDER = "system"


class ChatResult(BaseModel):
    answer: str
    session_id: str
    sources: List[SearchHit] = Field(default_factory=list)
    tokens_used: int = Field(default=0, ge=0)
    processing_time_ms: int = Field(default=0, ge=0)
    model_used: str

    model_config = ConfigDict(extra="forbid")


class RAGPipeline:
    """
    Composes the embedding gateway, vector store gateway, generation
    orchestrator and session store. All collaborators are injected.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStoreGateway,
        generator: GenerationOrchestrator,
        sessions: SessionStore,
        config: Optional[Settings] = None,
        usage: Optional[UsageStats] = None,
    ) -> None:
        self._embedder = embedder
        self._vector_store = vector_store
        self._generator = generator
        self._sessions = sessions
        self._config = config or default_settings
        self._usage = usage

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(
        self,
        text: str,
        session_id: Optional[str] = None,
        options: Optional[GenerationOptions] = None,
    ) -> ChatResult:
        """
        Answer ``text`` within a session.

        Parameters
        ----------
        text : str
            The user's message.

        session_id : Optional[str]
            Existing session id; an unknown or missing id starts a session.

        options : Optional[GenerationOptions]
            Model selector and sampling options.

        Returns
        -------
        ChatResult
            The answer, its sources and accounting.

        Raises
        ------
        ValidationFailed
            If the message is empty or too long, or the model selector is
            unknown. Nothing is recorded in that case.

        ProviderUnavailable
            If the selector names a provider without credentials.
        """
        started = time.perf_counter()
        options = self._generation_options(options)
        self._validate(text, options)

        session, created = self._sessions.get_or_create(session_id)
        if created:
            logger.info("Started session %s", session.id)
        prior = session.messages

        self._sessions.append(
            session.id,
            Message(role="user", content=text, timestamp=self._sessions.now()),
        )

        hits = await self._retrieve(text)

        prompt = self._build_prompt(text, prior, hits)

        try:
            result = await self._generator.generate(prompt, options)
            answer = result.content
            model_used = result.provider_model
            provider = result.provider_name
            tokens_used = result.tokens_used
            fallback = False
        except (ProviderUnavailable, ProviderCallFailed) as exc:
            logger.warning("Generation failed, returning fallback answer: %s", exc)
            answer = FALLBACK_ANSWER
            model_used = FALLBACK_MODEL
            provider = FALLBACK_PROVIDER
            tokens_used = 0
            fallback = True

        reply = Message(
            role="assistant",
            content=answer,
            timestamp=self._sessions.now(),
            metadata={
                "provider": provider,
                "provider_model": model_used,
                "tokens_used": tokens_used,
                "source_count": len(hits),
            },
        )
        try:
            self._sessions.append(session.id, reply)
        except SessionNotFound:
            # Deleted or swept while generating; the caller still gets the answer
            logger.warning(
                "Session %s ended during generation, answer not recorded", session.id
            )

        if self._usage is not None:
            self._usage.record_generation(model_used, tokens_used, fallback=fallback)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Answered in session %s (sources=%d, model=%s, %d ms)",
            session.id,
            len(hits),
            model_used,
            elapsed_ms,
        )

        return ChatResult(
            answer=answer,
            session_id=session.id,
            sources=hits,
            tokens_used=tokens_used,
            processing_time_ms=elapsed_ms,
            model_used=model_used,
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def new_session(self) -> str:
        return self._sessions.create()

    def get_session(self, session_id: str) -> Session:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def get_history(self, session_id: str) -> List[Message]:
        return self._sessions.history(session_id)

    def delete_session(self, session_id: str) -> bool:
        return self._sessions.delete(session_id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _generation_options(self, options: Optional[GenerationOptions]) -> GenerationOptions:
        options = options or GenerationOptions()
        defaults = {}
        if options.max_tokens is None:
            defaults["max_tokens"] = self._config.generation_max_tokens
        if options.temperature is None:
            defaults["temperature"] = self._config.generation_temperature
        return options.model_copy(update=defaults) if defaults else options

    def _validate(self, text: str, options: GenerationOptions) -> None:
        if not isinstance(text, str) or not text.strip():
            raise ValidationFailed("Message is required and must be non-empty.")
        if len(text) > self._config.max_message_length:
            raise ValidationFailed(
                f"Message too long (max {self._config.max_message_length} characters)."
            )
        # With no provider at all the turn is answered by the fallback instead
        if self._generator.is_available():
            self._generator.resolve(options.model)

    async def _retrieve(self, text: str) -> List[SearchHit]:
        if not self._vector_store.is_available() or not self._embedder.is_available():
            logger.info("Retrieval unavailable, answering without documents")
            return []

        try:
            query = await self._embedder.embed(text)
        except (ProviderUnavailable, ProviderCallFailed, ValidationFailed) as exc:
            logger.warning("Query embedding failed, answering without documents: %s", exc)
            return []

        if self._usage is not None:
            self._usage.record_embedding(text)

        return await self._vector_store.search(
            query.values,
            limit=self._config.retrieval_limit,
            threshold=self._config.retrieval_threshold,
        )

    def _build_prompt(
        self,
        text: str,
        prior: List[Message],
        hits: List[SearchHit],
    ) -> List[PromptMessage]:
        system = build_system_prompt(
            hits,
            max_chars=self._config.max_context_chars,
            language=self._config.response_language,
        )

        limit = self._config.history_context_messages
        recent = prior[-limit:] if limit > 0 else []

        prompt = [PromptMessage(role="system", content=system)]
        prompt.extend(PromptMessage(role=m.role, content=m.content) for m in recent)
        prompt.append(PromptMessage(role="user", content=text))
        return prompt
