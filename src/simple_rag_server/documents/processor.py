"""
Document Processing

Turns extracted document text into stored, searchable chunks:
chunk -> embed -> upsert. Also keeps the registry of ingested documents so
they can be listed and deleted (deleting a document removes its chunks from
the vector store).

File-format extraction happens before this layer; it only sees text.
"""

from __future__ import annotations

import hashlib
import logging
import time
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict, List, Optional

from ..core.errors import ValidationFailed
from ..chunking.splitter import build_chunks, split_text
from ..embeddings.embedder import Embedder
from ..embeddings.models import EmbeddingVector
from ..stats.usage import UsageStats
from ..vectors.gateway import VectorStoreGateway
from .models import SUPPORTED_FILE_TYPES, Chunk, Document, ProcessingResult

logger = logging.getLogger("rag.documents")


def make_document_id(filename: str, timestamp: datetime) -> str:
    digest = hashlib.md5(f"{filename}{timestamp.isoformat()}".encode("utf-8")).hexdigest()
    return f"doc_{digest[:8]}"


def infer_file_type(filename: str) -> str:
    _, dot, ext = filename.rpartition(".")
    return ext.lower() if dot else ""


class DocumentRegistry:
    """In-memory registry of ingested documents."""

    def __init__(self) -> None:
        self._documents: Dict[str, Document] = {}
        self._lock = RLock()

    def add(self, document: Document) -> None:
        with self._lock:
            self._documents[document.id] = document

    def get(self, document_id: str) -> Optional[Document]:
        with self._lock:
            return self._documents.get(document_id)

    def remove(self, document_id: str) -> bool:
        with self._lock:
            return self._documents.pop(document_id, None) is not None

    def list(
        self,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Document]:
        with self._lock:
            documents = sorted(
                self._documents.values(),
                key=lambda d: d.uploaded_at,
                reverse=True,
            )
        if search:
            needle = search.lower()
            documents = [d for d in documents if needle in d.filename.lower()]
        return documents[offset : offset + limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)


class DocumentProcessor:
    """
    Ingestion pipeline for extracted document text.

    Parameters
    ----------
    embedder : Embedder
        Embedding gateway.

    vector_store : VectorStoreGateway
        Vector store gateway.

    chunk_size : int
        Default chunk size in characters.

    chunk_overlap : int
        Default overlap in characters.

    max_file_size : int
        Largest accepted source file, in bytes.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStoreGateway,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_file_size: int = 100 * 1024 * 1024,
        registry: Optional[DocumentRegistry] = None,
        usage: Optional[UsageStats] = None,
    ) -> None:
        self._embedder = embedder
        self._vector_store = vector_store
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_file_size = max_file_size
        self.registry = registry or DocumentRegistry()
        self._usage = usage

    @property
    def supported_types(self) -> List[str]:
        return list(SUPPORTED_FILE_TYPES)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    async def process_document(
        self,
        text: str,
        filename: str,
        file_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ) -> ProcessingResult:
        """
        Chunk, embed and store a document.

        When the embedder or vector store is unavailable the chunks are still
        produced and returned, with ``stored=False``.

        Raises
        ------
        ValidationFailed
            For empty text, an unsupported type, an oversize file or bad
            chunk parameters.

        EmbeddingError, VectorStoreError
            If embedding or storing fails.
        """
        started = time.perf_counter()

        file_type = (file_type or infer_file_type(filename)).lower()
        if file_type not in SUPPORTED_FILE_TYPES:
            raise ValidationFailed(
                f"Unsupported file type '{file_type}'. "
                f"Supported: {', '.join(SUPPORTED_FILE_TYPES)}"
            )

        encoded_size = len(text.encode("utf-8")) if isinstance(text, str) else 0
        size = size_bytes if size_bytes is not None else encoded_size
        if size > self.max_file_size:
            raise ValidationFailed(
                f"File too large ({size} bytes, max {self.max_file_size})."
            )

        size_chars = chunk_size or self.chunk_size
        overlap = self.chunk_overlap if chunk_overlap is None else chunk_overlap
        pieces = split_text(text, size_chars, overlap)

        uploaded_at = datetime.now(timezone.utc)
        document_id = make_document_id(filename, uploaded_at)
        chunks = build_chunks(
            document_id,
            pieces,
            metadata={
                "source": filename,
                "file_type": file_type,
                "created_at": uploaded_at.isoformat(),
            },
        )

        stored = False
        if self._embedder.is_available() and self._vector_store.is_available():
            vectors = await self._embed_chunks(chunks)
            await self._vector_store.upsert(chunks, vectors)
            stored = True
        else:
            logger.warning(
                "Embeddings or vector store unavailable; %s chunked but not indexed",
                filename,
            )

        document = Document(
            id=document_id,
            filename=filename,
            file_type=file_type,
            size_bytes=size,
            uploaded_at=uploaded_at,
            status="indexed" if stored else "chunked",
            chunk_count=len(chunks),
        )
        self.registry.add(document)

        if self._usage is not None:
            self._usage.record_ingestion(len(chunks))

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Processed %s into %d chunks (document=%s, stored=%s, %d ms)",
            filename,
            len(chunks),
            document_id,
            stored,
            elapsed_ms,
        )

        return ProcessingResult(
            document=document,
            chunks=chunks,
            stored=stored,
            processing_time_ms=elapsed_ms,
        )

    async def _embed_chunks(self, chunks: List[Chunk]) -> List[EmbeddingVector]:
        vectors: List[EmbeddingVector] = []
        step = self._embedder.max_batch_texts
        for start in range(0, len(chunks), step):
            batch = chunks[start : start + step]
            embedded = await self._embedder.embed_batch([c.content for c in batch])
            vectors.extend(
                v.model_copy(update={"chunk_id": c.id}) for c, v in zip(batch, embedded)
            )
            if self._usage is not None:
                for chunk in batch:
                    self._usage.record_embedding(chunk.content)
        return vectors

    # ------------------------------------------------------------------
    # Management
    # ------------------------------------------------------------------

    async def delete_document(self, document_id: str) -> bool:
        """
        Delete a document and all of its chunks.

        Returns
        -------
        bool
            True if the document was known or any chunk was removed.
        """
        removed_points = 0
        if self._vector_store.is_available():
            removed_points = await self._vector_store.delete(document_id=document_id)

        known = self.registry.remove(document_id)
        return known or removed_points > 0

    def get_document(self, document_id: str) -> Optional[Document]:
        return self.registry.get(document_id)

    def list_documents(
        self,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Document]:
        return self.registry.list(search=search, limit=limit, offset=offset)

    def processing_stats(self) -> Dict[str, Any]:
        return {
            "supported_types": self.supported_types,
            "chunk_size": self.chunk_size,
            "chunk_overlap": self.chunk_overlap,
            "max_file_size": self.max_file_size,
            "documents": len(self.registry),
            "embedding": self._embedder.model_info(),
        }
