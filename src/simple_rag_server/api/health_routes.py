"""
Health Routes

- ``GET /health``: cheap liveness/readiness view, no upstream calls
- ``GET /health/providers``: active probes of every provider (slow; not for
  load balancer checks)
- ``GET /health/info``: configuration summary
"""

import asyncio
from typing import Annotated, Any, Dict

from fastapi import APIRouter, Depends

from .dependencies import get_services
from ..services import ServiceContainer

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> Dict[str, Any]:
    llm_ok = services.generator.is_available()
    vector_ok = services.vector_store.is_available()
    embed_ok = services.embedder.is_available()

    if llm_ok and vector_ok and embed_ok:
        overall = "ok"
    elif llm_ok:
        overall = "degraded"
    else:
        overall = "unhealthy"

    return {
        "status": overall,
        "services": {
            "llm": {
                "available": llm_ok,
                "providers": services.generator.available_providers,
            },
            "embeddings": {"available": embed_ok},
            "vector_store": {"available": vector_ok},
            "sessions": {"active": len(services.sessions)},
        },
    }


@router.get("/providers")
async def provider_health(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> Dict[str, Any]:
    llm, embeddings, vector_store = await asyncio.gather(
        services.generator.health_check(),
        services.embedder.health_check(),
        services.vector_store.health_check(),
    )
    return {
        "llm": llm,
        "embeddings": embeddings,
        "vector_store": vector_store,
    }


@router.get("/info")
async def info(
    services: Annotated[ServiceContainer, Depends(get_services)],
) -> Dict[str, Any]:
    config = services.config
    return {
        "name": config.app_name,
        "version": "1.0.0",
        "generation": {
            "default_model": services.generator.default_model(),
            "models": services.generator.available_models(),
        },
        "embeddings": services.embedder.model_info(),
        "vector_store": {
            "backend": config.vector_backend,
            "collection": services.vector_store.collection_name,
            "dimension": services.vector_store.dimension,
        },
        "documents": services.processor.processing_stats(),
        "sessions": {
            "ttl_seconds": config.session_ttl_seconds,
            "history_limit": config.session_history_limit,
        },
    }
