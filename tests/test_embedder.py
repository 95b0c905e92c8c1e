import json

import httpx
import pytest

from simple_rag_server.core.errors import (
    ConfigurationFatal,
    ProviderUnavailable,
    ValidationFailed,
)
from simple_rag_server.embeddings.embedder import Embedder, EmbeddingError


def google_transport(calls, dimension=4, fail_on=None):
    """Google embedContent stub: the first component is the text length."""

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        text = body["content"]["parts"][0]["text"]
        calls.append((request, text))
        if fail_on is not None and text == fail_on:
            return httpx.Response(500, json={"error": "boom"})
        values = [float(len(text))] + [0.0] * (dimension - 1)
        return httpx.Response(200, json={"embedding": {"values": values}})

    return httpx.MockTransport(handler)


def make_embedder(transport, **kwargs):
    params = dict(
        api_key="test-key",
        model="text-embedding-004",
        provider="google",
        dimension=4,
        timeout=5,
        batch_size=5,
        max_chars=100,
        transport=transport,
    )
    params.update(kwargs)
    return Embedder(**params)


class TestGoogleEmbedding:
    """Embedding requests against the Google Generative Language API."""

    @pytest.mark.asyncio
    async def test_embed_single_text(self):
        calls = []
        embedder = make_embedder(google_transport(calls))

        vector = await embedder.embed("hello")

        assert vector.values == [5.0, 0.0, 0.0, 0.0]
        assert vector.provider_model == "text-embedding-004"
        assert vector.dimension == 4

        request, _ = calls[0]
        assert str(request.url).endswith("/models/text-embedding-004:embedContent")
        assert request.headers["x-goog-api-key"] == "test-key"

    @pytest.mark.asyncio
    async def test_batch_preserves_order_across_sub_batches(self):
        calls = []
        embedder = make_embedder(google_transport(calls))
        texts = ["x" * n for n in range(1, 13)]

        vectors = await embedder.embed_batch(texts)

        assert [v.values[0] for v in vectors] == [float(n) for n in range(1, 13)]
        assert len(calls) == 12

    @pytest.mark.asyncio
    async def test_empty_batch_returns_empty_list(self):
        calls = []
        embedder = make_embedder(google_transport(calls))

        assert await embedder.embed_batch([]) == []
        assert calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   ", "y" * 101])
    async def test_invalid_text_rejected_before_network(self, text):
        calls = []
        embedder = make_embedder(google_transport(calls))

        with pytest.raises(ValidationFailed):
            await embedder.embed(text)
        with pytest.raises(ValidationFailed):
            await embedder.embed_batch(["fine", text])

        assert calls == []

    @pytest.mark.asyncio
    async def test_oversized_batch_rejected(self):
        calls = []
        embedder = make_embedder(google_transport(calls))

        with pytest.raises(ValidationFailed):
            await embedder.embed_batch(["t"] * 101)

        assert calls == []

    @pytest.mark.asyncio
    async def test_missing_key_is_unavailable(self):
        calls = []
        embedder = make_embedder(google_transport(calls), api_key="")

        assert embedder.is_available() is False
        with pytest.raises(ProviderUnavailable):
            await embedder.embed("hello")
        assert await embedder.health_check() is False

    @pytest.mark.asyncio
    async def test_http_error_aborts_batch(self):
        calls = []
        embedder = make_embedder(google_transport(calls, fail_on="bad"))

        with pytest.raises(EmbeddingError) as exc_info:
            await embedder.embed_batch(["good", "bad", "fine"])

        assert exc_info.value.provider == "google"

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_fatal(self):
        calls = []
        embedder = make_embedder(google_transport(calls, dimension=3))

        with pytest.raises(ConfigurationFatal):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        transport = httpx.MockTransport(
            lambda request: httpx.Response(200, json={"unexpected": True})
        )
        embedder = make_embedder(transport)

        with pytest.raises(EmbeddingError):
            await embedder.embed("hello")

    @pytest.mark.asyncio
    async def test_health_check(self):
        calls = []
        assert await make_embedder(google_transport(calls)).health_check() is True

        failing = httpx.MockTransport(lambda request: httpx.Response(503))
        assert await make_embedder(failing).health_check() is False


class TestOpenAIEmbedding:
    """Embedding requests against the OpenAI embeddings endpoint."""

    @pytest.mark.asyncio
    async def test_request_shape_and_parsing(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((request, json.loads(request.content)))
            return httpx.Response(
                200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]}
            )

        embedder = make_embedder(
            httpx.MockTransport(handler),
            provider="openai",
            model="text-embedding-3-small",
            dimension=3,
        )

        vector = await embedder.embed("hello")

        assert vector.values == [0.1, 0.2, 0.3]
        request, body = seen[0]
        assert str(request.url) == "https://api.openai.com/v1/embeddings"
        assert request.headers["authorization"] == "Bearer test-key"
        assert body == {
            "model": "text-embedding-3-small",
            "input": "hello",
            "dimensions": 3,
        }


def test_unknown_provider_is_fatal():
    with pytest.raises(ConfigurationFatal):
        Embedder(api_key="k", provider="mystery")


def test_model_info():
    embedder = make_embedder(None)
    info = embedder.model_info()

    assert info["provider"] == "google"
    assert info["dimension"] == 4
    assert info["available"] is True
