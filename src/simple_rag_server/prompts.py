"""
Prompt templates for grounded answering.
"""

from typing import List, Sequence

from .vectors.models import SearchHit

RAG_SYSTEM_PROMPT = """You are a helpful assistant that answers questions using the documents provided below.

Instructions:
- Base your answer on the information in the provided documents.
- If the documents do not contain enough information to answer, say that you don't know instead of guessing.
- Be specific and cite the source document names when it helps the user.
- Keep the answer concise and relevant to the question.
- Answer in {language}.

Relevant documents:
{documents}"""

NO_DOCUMENTS_NOTICE = (
    "No relevant documents were found for this question. Say so to the user, "
    "and only answer from general knowledge if you clearly mark it as such."
)

FALLBACK_ANSWER = (
    "I'm sorry, I'm having trouble generating a response right now. "
    "Please try again in a moment."
)


def build_context_block(hits: Sequence[SearchHit], max_chars: int) -> str:
    """
    Join retrieved passages in ranked order, stopping at ``max_chars``.

    The passage that crosses the bound is truncated; later ones are dropped.
    """
    parts: List[str] = []
    used = 0

    for number, hit in enumerate(hits, start=1):
        header = f"[Document {number}: {hit.source}]\n"
        entry = header + hit.content
        separator = 2 if parts else 0
        remaining = max_chars - used - separator
        if remaining <= len(header):
            break
        if len(entry) > remaining:
            entry = entry[:remaining]
        parts.append(entry)
        used += separator + len(entry)

    return "\n\n".join(parts)


def build_system_prompt(
    hits: Sequence[SearchHit],
    max_chars: int,
    language: str = "English",
) -> str:
    documents = build_context_block(hits, max_chars) if hits else ""
    return RAG_SYSTEM_PROMPT.format(
        language=language,
        documents=documents or NO_DOCUMENTS_NOTICE,
    )
