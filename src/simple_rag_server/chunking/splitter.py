"""
Boundary-Aware Text Splitter

Splits extracted document text into overlapping chunks that prefer to end on
a whitespace or sentence boundary.

Key Properties
--------------
- Pure and total: same input, same output; no I/O
- Windows only move forward; consecutive windows share up to ``overlap``
  characters
- A boundary is only taken if the chunk keeps more than half its size
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import ValidationFailed
from ..documents.models import Chunk, make_chunk_id

BOUNDARY_CHARS = (" ", "\n", ".")


def _validate(text: str, chunk_size: int, overlap: int) -> None:
    if not text or not text.strip():
        raise ValidationFailed("Text to split must be non-empty.")
    if overlap < 0:
        raise ValidationFailed("Chunk overlap must be >= 0.")
    if chunk_size <= overlap:
        raise ValidationFailed(
            f"Chunk size ({chunk_size}) must be greater than overlap ({overlap})."
        )


def _boundary_before(text: str, end: int) -> int:
    """Index of the last boundary character at or before ``end`` (-1 if none)."""
    return max(text.rfind(ch, 0, end + 1) for ch in BOUNDARY_CHARS)


def split_text(text: str, chunk_size: int, overlap: int) -> List[str]:
    """
    Split text into overlapping, boundary-aware chunks.

    Parameters
    ----------
    text : str
        Extracted document text.

    chunk_size : int
        Maximum characters per chunk.

    overlap : int
        Characters shared between consecutive windows.

    Returns
    -------
    List[str]
        Ordered, stripped, non-empty chunks. Text no longer than
        ``chunk_size`` is returned untouched as a single chunk.

    Raises
    ------
    ValidationFailed
        If the text is empty or ``chunk_size <= overlap``.
    """
    _validate(text, chunk_size, overlap)

    length = len(text)
    if length <= chunk_size:
        return [text]

    chunks: List[str] = []
    start = 0

    while start < length:
        end = min(start + chunk_size, length)

        if end < length:
            boundary = _boundary_before(text, end)
            if boundary > start + chunk_size * 0.5:
                end = boundary + 1

        piece = text[start:end].strip()
        if piece:
            chunks.append(piece)

        # Always moves forward: end > start on every iteration
        start = max(start + chunk_size - overlap, end)

    return chunks


def build_chunks(
    document_id: str,
    pieces: Sequence[str],
    metadata: Optional[Dict[str, Any]] = None,
) -> List[Chunk]:
    """Turn split text into Chunk records with contiguous 0-based indices."""
    base = dict(metadata or {})
    return [
        Chunk(
            id=make_chunk_id(document_id, index),
            document_id=document_id,
            index=index,
            content=piece,
            size_chars=len(piece),
            metadata=base,
        )
        for index, piece in enumerate(pieces)
    ]
