"""
Chat Routes: Retrieval-Augmented Conversational Interface

This module exposes the RAG pipeline over HTTP:
- ``POST /chat``: answer a message within a session
- ``POST /chat/session``: start an empty session
- ``GET /chat/history/{session_id}``: read a session's bounded history
- ``DELETE /chat/session/{session_id}``: end a session

Validation, provider and session errors are raised as domain exceptions and
mapped to HTTP responses by the global handlers in core.errors.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from .dependencies import get_pipeline
from .models import (
    ChatRequest,
    ChatResponse,
    HistoryResponse,
    OperationResult,
    SessionCreatedResponse,
    SourceDocument,
)
from ..llm.models import GenerationOptions
from ..rag.pipeline import RAGPipeline

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post(
    "",
    response_model=ChatResponse,
    summary="Ask a question about the indexed documents",
    status_code=status.HTTP_200_OK,
)
async def chat(
    req: ChatRequest,
    pipeline: Annotated[RAGPipeline, Depends(get_pipeline)],
) -> ChatResponse:
    """
    Answer ``req.message`` in the given (or a new) session.

    Returns
    -------
    ChatResponse
        The answer, the session id to continue with, and the passages used.
    """
    options = GenerationOptions(
        model=req.model,
        max_tokens=req.max_tokens,
        temperature=req.temperature,
    )
    result = await pipeline.chat(req.message, session_id=req.session_id, options=options)

    return ChatResponse(
        answer=result.answer,
        session_id=result.session_id,
        sources=[SourceDocument.from_hit(hit) for hit in result.sources],
        tokens_used=result.tokens_used,
        processing_time_ms=result.processing_time_ms,
        model_used=result.model_used,
    )


@router.post(
    "/session",
    response_model=SessionCreatedResponse,
    summary="Create a new chat session",
)
async def create_session(
    pipeline: Annotated[RAGPipeline, Depends(get_pipeline)],
) -> SessionCreatedResponse:
    return SessionCreatedResponse(session_id=pipeline.new_session())


@router.get(
    "/history/{session_id}",
    response_model=HistoryResponse,
    summary="Get the message history of a session",
)
async def get_history(
    session_id: str,
    pipeline: Annotated[RAGPipeline, Depends(get_pipeline)],
) -> HistoryResponse:
    return HistoryResponse.from_session(pipeline.get_session(session_id))


@router.delete(
    "/session/{session_id}",
    response_model=OperationResult,
    summary="Delete a chat session",
)
async def delete_session(
    session_id: str,
    pipeline: Annotated[RAGPipeline, Depends(get_pipeline)],
) -> OperationResult:
    if not pipeline.delete_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Session not found",
        )
    return OperationResult(status="deleted", details={"session_id": session_id})
