"""
Search Routes

Direct semantic search over the indexed chunks, without generation. Useful
for checking what the chat endpoint would retrieve for a question.
"""

from typing import Annotated, List

from fastapi import APIRouter, Depends, status

from .dependencies import get_embedder, get_vector_store
from .models import SearchRequest, SourceDocument
from ..core.errors import ProviderUnavailable
from ..embeddings.embedder import Embedder
from ..vectors.gateway import VectorStoreGateway

router = APIRouter(prefix="/search", tags=["search"])


@router.post(
    "",
    response_model=List[SourceDocument],
    summary="Vector-based semantic search",
    status_code=status.HTTP_200_OK,
)
async def search(
    req: SearchRequest,
    embedder: Annotated[Embedder, Depends(get_embedder)],
    vector_store: Annotated[VectorStoreGateway, Depends(get_vector_store)],
) -> List[SourceDocument]:
    """
    Embed ``req.query`` and return the matching passages, best first.
    """
    if not vector_store.is_available():
        raise ProviderUnavailable("Vector store is not available.")

    query = await embedder.embed(req.query)
    search_filter = {"document_id": req.document_id} if req.document_id else None

    hits = await vector_store.search(
        query.values,
        limit=req.limit,
        threshold=req.threshold,
        filter=search_filter,
    )
    return [SourceDocument.from_hit(hit) for hit in hits]
