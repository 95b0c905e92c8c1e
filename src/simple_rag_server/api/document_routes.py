"""
Document Routes

Endpoints for ingesting already-extracted document text and for listing
and deleting ingested documents. Deleting a document removes its chunks
from the vector store.
"""

from typing import Annotated, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from .dependencies import get_processor
from .models import (
    DocumentIngestRequest,
    DocumentIngestResponse,
    DocumentListResponse,
    OperationResult,
)
from ..documents.models import Document
from ..documents.processor import DocumentProcessor

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post(
    "",
    response_model=DocumentIngestResponse,
    summary="Chunk, embed and index a document",
    status_code=status.HTTP_201_CREATED,
)
async def ingest_document(
    req: DocumentIngestRequest,
    processor: Annotated[DocumentProcessor, Depends(get_processor)],
) -> DocumentIngestResponse:
    """
    Ingest extracted text synchronously.

    Embedding and vector store failures propagate to the global handlers;
    ``stored`` is false only when those services are not configured.
    """
    result = await processor.process_document(
        req.text,
        req.filename,
        file_type=req.file_type,
        size_bytes=req.size_bytes,
        chunk_size=req.chunk_size,
        chunk_overlap=req.chunk_overlap,
    )
    return DocumentIngestResponse(
        document=result.document,
        chunk_count=len(result.chunks),
        chunk_ids=[c.id for c in result.chunks],
        stored=result.stored,
        processing_time_ms=result.processing_time_ms,
    )


@router.get(
    "",
    response_model=DocumentListResponse,
    summary="List ingested documents",
)
async def list_documents(
    processor: Annotated[DocumentProcessor, Depends(get_processor)],
    search: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> DocumentListResponse:
    documents = processor.list_documents(search=search, limit=limit, offset=offset)
    return DocumentListResponse(
        documents=documents,
        total=len(processor.registry),
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{document_id}",
    response_model=Document,
    summary="Get one ingested document",
)
async def get_document(
    document_id: str,
    processor: Annotated[DocumentProcessor, Depends(get_processor)],
) -> Document:
    document = processor.get_document(document_id)
    if document is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return document


@router.delete(
    "/{document_id}",
    response_model=OperationResult,
    summary="Delete a document and its chunks",
)
async def delete_document(
    document_id: str,
    processor: Annotated[DocumentProcessor, Depends(get_processor)],
) -> OperationResult:
    if not await processor.delete_document(document_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Document not found",
        )
    return OperationResult(status="deleted", details={"document_id": document_id})
