"""
Embedding Client

This module implements the embedding gateway: a test-friendly client that
turns text into fixed-dimension vectors using one configured provider
(Google Generative Language or OpenAI). It is responsible for:

- Input validation before any network call
- Concurrent sub-batching of text inputs
- Network and transport error isolation
- Strict response validation, including vector dimensionality

The class holds no per-request state and is safe to reuse across requests.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import settings
from ..core.errors import (
    ConfigurationFatal,
    ProviderCallFailed,
    ProviderUnavailable,
    ValidationFailed,
)
from .models import EmbeddingVector

logger = logging.getLogger("rag.embedder")

GOOGLE_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
OPENAI_BASE_URL = "https://api.openai.com/v1"

HEALTH_CHECK_TEXT = "health check test"


class EmbeddingError(ProviderCallFailed):
    """Raised when embedding generation fails."""


class Embedder:
    """
    Asynchronous embedding generator.

    This class performs no caching and never retains the vectors it returns.
    """

    max_batch_texts = 100

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        dimension: Optional[int] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        batch_size: Optional[int] = None,
        max_chars: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize an Embedder.

        Parameters
        ----------
        api_key : Optional[str]
            Provider credential. Defaults to the configured key for the
            provider; without one the embedder reports itself unavailable.

        model : Optional[str]
            Embedding model. Defaults to settings.embedding_model.

        provider : Optional[str]
            ``"google"`` or ``"openai"``. Defaults to settings.embedding_provider.

        dimension : Optional[int]
            Expected vector length. Defaults to settings.embedding_dimension.

        base_url : Optional[str]
            API base URL override.

        timeout : Optional[float]
            HTTP timeout for each request.

        batch_size : Optional[int]
            Number of concurrent requests per sub-batch.

        max_chars : Optional[int]
            Longest accepted input text.

        transport : Optional[httpx.AsyncBaseTransport]
            Transport override, used by tests.
        """
        self.provider = provider or settings.embedding_provider
        if self.provider not in ("google", "openai"):
            raise ConfigurationFatal(
                f"Unsupported embedding provider: {self.provider!r}"
            )

        self.api_key = (
            api_key if api_key is not None
            else settings.provider_api_key(self.provider)
        )
        self.model = model or settings.embedding_model
        self.dimension = dimension or settings.embedding_dimension
        self.base_url = (base_url or (
            GOOGLE_BASE_URL if self.provider == "google" else OPENAI_BASE_URL
        )).rstrip("/")
        self.timeout = timeout or settings.embedding_timeout
        self.batch_size = batch_size or settings.embedding_batch_size
        self.max_chars = max_chars or settings.embedding_max_chars
        self._transport = transport

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        return bool(self.api_key)

    async def embed(self, text: str) -> EmbeddingVector:
        """
        Embed a single text.

        Raises
        ------
        ValidationFailed
            If the text is empty or longer than ``max_chars``.

        ProviderUnavailable
            If no credential is configured.

        EmbeddingError
            If the request fails or the response is malformed.
        """
        self._validate_text(text)
        self._require_available()

        async with self._client() as client:
            return await self._embed_one(client, text)

    async def embed_batch(self, texts: Sequence[str]) -> List[EmbeddingVector]:
        """
        Embed a sequence of texts, preserving order.

        Texts are processed in sub-batches of ``batch_size``; requests inside
        a sub-batch run concurrently and sub-batches run one after another.
        Any failure aborts the whole call.

        Returns
        -------
        List[EmbeddingVector]
            One vector per input text, in input order.
        """
        if not texts:
            return []

        if len(texts) > self.max_batch_texts:
            raise ValidationFailed(
                f"Batch of {len(texts)} texts exceeds the maximum of "
                f"{self.max_batch_texts}."
            )

        for position, text in enumerate(texts):
            self._validate_text(text, position)
        self._require_available()

        vectors: List[EmbeddingVector] = []

        async with self._client() as client:
            for start in range(0, len(texts), self.batch_size):
                batch = texts[start : start + self.batch_size]
                results = await asyncio.gather(
                    *(self._embed_one(client, text) for text in batch)
                )
                vectors.extend(results)

        return vectors

    async def health_check(self) -> bool:
        """Embed a tiny probe text. Never raises."""
        if not self.is_available():
            return False
        try:
            await self.embed(HEALTH_CHECK_TEXT)
        except (ProviderUnavailable, ProviderCallFailed, ConfigurationFatal) as exc:
            logger.warning("Embedding health check failed: %s", exc)
            return False
        return True

    def model_info(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "model": self.model,
            "dimension": self.dimension,
            "max_input_length": self.max_chars,
            "batch_size": self.batch_size,
            "available": self.is_available(),
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def _require_available(self) -> None:
        if not self.is_available():
            raise ProviderUnavailable(
                f"Embedding provider '{self.provider}' has no API key configured."
            )

    def _validate_text(self, text: str, position: Optional[int] = None) -> None:
        where = "" if position is None else f" at index {position}"
        if not isinstance(text, str) or not text.strip():
            raise ValidationFailed(f"Text to embed{where} must be non-empty.")
        if len(text) > self.max_chars:
            raise ValidationFailed(
                f"Text to embed{where} is {len(text)} characters; "
                f"maximum is {self.max_chars}."
            )

    def _build_request(self, text: str) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        if self.provider == "google":
            url = f"{self.base_url}/models/{self.model}:embedContent"
            payload: Dict[str, Any] = {
                "model": f"models/{self.model}",
                "content": {"parts": [{"text": text}]},
            }
            headers = {"x-goog-api-key": self.api_key}
        else:
            url = f"{self.base_url}/embeddings"
            payload = {"model": self.model, "input": text}
            # Only the v3 family accepts a reduced output size
            if self.model.startswith("text-embedding-3"):
                payload["dimensions"] = self.dimension
            headers = {"Authorization": f"Bearer {self.api_key}"}
        return url, payload, headers

    async def _embed_one(self, client: httpx.AsyncClient, text: str) -> EmbeddingVector:
        url, payload, headers = self._build_request(text)

        try:
            response = await client.post(url, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            logger.error(
                "Embedding request failed (%s): provider=%s, error=%s",
                type(exc).__name__,
                self.provider,
                str(exc),
            )
            raise EmbeddingError(
                f"Embedding generation failed: {type(exc).__name__}",
                provider=self.provider,
            ) from exc
        except ValueError as exc:
            raise EmbeddingError(
                "Embedding response is not valid JSON.",
                provider=self.provider,
            ) from exc

        values = self._extract_values(data)

        if len(values) != self.dimension:
            raise ConfigurationFatal(
                f"Embedding model {self.model} returned {len(values)} dimensions; "
                f"the vector index is configured for {self.dimension}."
            )

        return EmbeddingVector(values=values, provider_model=self.model)

    def _extract_values(self, data: Any) -> List[float]:
        """
        Parse and validate embedding output format.

        Google returns ``{"embedding": {"values": [...]}}``; OpenAI returns
        ``{"data": [{"embedding": [...]}]}``.

        Raises
        ------
        EmbeddingError
            If the API returns an unexpected structure.
        """
        try:
            if self.provider == "google":
                values = data["embedding"]["values"]
            else:
                values = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as exc:
            raise EmbeddingError(
                f"Malformed embedding response from {self.provider}.",
                provider=self.provider,
            ) from exc

        if not isinstance(values, list) or not values or not all(
            isinstance(x, (float, int)) for x in values
        ):
            raise EmbeddingError(
                "Invalid embedding vector: must be a non-empty float list.",
                provider=self.provider,
            )

        return [float(x) for x in values]
