from typing import Annotated

from fastapi import Depends, Request

from ..documents.processor import DocumentProcessor
from ..embeddings.embedder import Embedder
from ..rag.pipeline import RAGPipeline
from ..services import ServiceContainer
from ..vectors.gateway import VectorStoreGateway


def get_services(request: Request) -> ServiceContainer:
    # Populated by the application lifespan
    return request.app.state.services


Services = Annotated[ServiceContainer, Depends(get_services)]


def get_pipeline(services: Services) -> RAGPipeline:
    return services.pipeline


def get_processor(services: Services) -> DocumentProcessor:
    return services.processor


def get_embedder(services: Services) -> Embedder:
    return services.embedder


def get_vector_store(services: Services) -> VectorStoreGateway:
    return services.vector_store
