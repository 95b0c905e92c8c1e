"""
Service Wiring

Builds every component from settings and owns their lifecycle. Components
never reach for globals; they receive their collaborators here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from .config import Settings
from .core.errors import ConfigurationFatal
from .documents.processor import DocumentProcessor
from .embeddings.embedder import Embedder
from .llm.orchestrator import GenerationOrchestrator
from .llm.providers import build_providers
from .llm.registry import default_registry
from .rag.pipeline import RAGPipeline
from .sessions.store import SessionStore
from .sessions.sweeper import SessionSweeper
from .stats.usage import UsageStats
from .vectors.base import VectorCollection
from .vectors.gateway import VectorStoreGateway
from .vectors.index import FaissCollection

logger = logging.getLogger("rag.app")


@dataclass
class ServiceContainer:
    config: Settings
    embedder: Embedder
    vector_store: VectorStoreGateway
    generator: GenerationOrchestrator
    sessions: SessionStore
    sweeper: SessionSweeper
    pipeline: RAGPipeline
    processor: DocumentProcessor
    usage: UsageStats

    async def startup(self) -> None:
        """
        Bootstrap the vector collection and start the session sweeper.

        A ConfigurationFatal from the bootstrap aborts startup.
        """
        await self.vector_store.initialize()
        self.sweeper.start()
        logger.info(
            "Services ready (providers=%s, embeddings=%s, vector_store=%s)",
            ",".join(self.generator.available_providers) or "none",
            self.embedder.is_available(),
            self.vector_store.is_available(),
        )

    async def shutdown(self) -> None:
        await self.sweeper.stop()
        await self.vector_store.close()
        logger.info("Services stopped")


def build_collection(config: Settings) -> VectorCollection:
    """Select the vector index service for the configured backend."""
    if config.vector_backend == "pgvector":
        if not config.database_url:
            raise ConfigurationFatal("DATABASE_URL is required for the pgvector backend.")
        from .db import PgVectorCollection, create_engine

        return PgVectorCollection(
            create_engine(config.database_url),
            name=config.vector_collection,
        )

    collection = FaissCollection(
        name=config.vector_collection,
        index_path=config.vector_index_path,
        meta_path=config.vector_meta_path,
    )
    collection.load()
    return collection


def build_services(
    config: Settings,
    collection: Optional[VectorCollection] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ServiceContainer:
    """
    Construct the full service graph.

    Raises
    ------
    ConfigurationFatal
        If no generation provider has credentials.
    """
    if not config.configured_providers():
        raise ConfigurationFatal(
            "At least one AI provider API key is required "
            "(GOOGLE_API_KEY, OPENAI_API_KEY, ANTHROPIC_API_KEY or COHERE_API_KEY)."
        )

    usage = UsageStats()

    embedder = Embedder(
        api_key=config.embedding_api_key or "",
        model=config.embedding_model,
        provider=config.embedding_provider,
        dimension=config.embedding_dimension,
        timeout=config.embedding_timeout,
        batch_size=config.embedding_batch_size,
        max_chars=config.embedding_max_chars,
        transport=transport,
    )
    if not embedder.is_available():
        logger.warning(
            "No API key for embedding provider '%s'; retrieval is disabled",
            config.embedding_provider,
        )

    vector_store = VectorStoreGateway(
        collection if collection is not None else build_collection(config),
        dimension=config.embedding_dimension,
        batch_size=config.upsert_batch_size,
    )

    generator = GenerationOrchestrator(
        build_providers(config, transport=transport),
        registry=default_registry(config),
        health_check_timeout=config.health_check_timeout,
    )

    sessions = SessionStore(
        max_messages=config.session_history_limit,
        ttl_seconds=config.session_ttl_seconds,
    )
    sweeper = SessionSweeper(sessions, config.session_cleanup_interval_seconds)

    pipeline = RAGPipeline(
        embedder,
        vector_store,
        generator,
        sessions,
        config=config,
        usage=usage,
    )
    processor = DocumentProcessor(
        embedder,
        vector_store,
        chunk_size=config.chunk_size,
        chunk_overlap=config.chunk_overlap,
        max_file_size=config.max_file_size,
        usage=usage,
    )

    return ServiceContainer(
        config=config,
        embedder=embedder,
        vector_store=vector_store,
        generator=generator,
        sessions=sessions,
        sweeper=sweeper,
        pipeline=pipeline,
        processor=processor,
        usage=usage,
    )
