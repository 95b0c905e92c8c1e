from unittest.mock import AsyncMock, MagicMock

import pytest

from simple_rag_server.chunking.splitter import build_chunks
from simple_rag_server.core.errors import (
    ConfigurationFatal,
    ProviderUnavailable,
    ValidationFailed,
)
from simple_rag_server.embeddings.models import EmbeddingVector
from simple_rag_server.vectors.gateway import VectorStoreError, VectorStoreGateway
from simple_rag_server.vectors.index import FaissCollection
from simple_rag_server.vectors.models import CollectionInfo, ScoredPoint


def vectors_for(count, dimension=3):
    return [
        EmbeddingVector(values=[1.0] + [0.0] * (dimension - 1), provider_model="m")
        for _ in range(count)
    ]


def mock_collection(dimension=3):
    coll = MagicMock()
    coll.name = "mock"
    coll.exists = AsyncMock(return_value=True)
    coll.info = AsyncMock(
        return_value=CollectionInfo(
            name="mock", points_count=0, dimension=dimension, metric="cosine"
        )
    )
    coll.upsert = AsyncMock(side_effect=lambda points: len(points))
    coll.search = AsyncMock(return_value=[])
    coll.delete = AsyncMock(return_value=0)
    coll.close = AsyncMock()
    return coll


class TestInitialize:
    """Collection bootstrap."""

    @pytest.mark.asyncio
    async def test_creates_missing_collection(self):
        coll = FaissCollection("docs")
        gateway = VectorStoreGateway(coll, dimension=3)

        assert await gateway.initialize() is True
        assert gateway.is_available() is True
        assert (await coll.info()).dimension == 3

    @pytest.mark.asyncio
    async def test_existing_collection_is_reused(self):
        coll = FaissCollection("docs")
        await VectorStoreGateway(coll, dimension=3).initialize()

        assert await VectorStoreGateway(coll, dimension=3).initialize() is True

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_fatal(self):
        coll = FaissCollection("docs")
        await VectorStoreGateway(coll, dimension=3).initialize()

        with pytest.raises(ConfigurationFatal):
            await VectorStoreGateway(coll, dimension=768).initialize()

    @pytest.mark.asyncio
    async def test_unreachable_index_degrades(self):
        coll = mock_collection()
        coll.exists.side_effect = ConnectionError("refused")
        gateway = VectorStoreGateway(coll, dimension=3)

        assert await gateway.initialize() is False
        assert gateway.is_available() is False
        assert await gateway.health_check() is False

        with pytest.raises(ProviderUnavailable):
            await gateway.search([1.0, 0.0, 0.0], limit=5, threshold=0.7)


class TestUpsert:
    """Batched writes."""

    @pytest.mark.asyncio
    async def test_writes_in_sequential_batches(self):
        coll = mock_collection()
        gateway = VectorStoreGateway(coll, dimension=3, batch_size=2)
        await gateway.initialize()
        chunks = build_chunks("doc_1", [f"piece {i}" for i in range(5)])

        written = await gateway.upsert(chunks, vectors_for(5))

        assert written == 5
        batch_sizes = [len(call.args[0]) for call in coll.upsert.call_args_list]
        assert batch_sizes == [2, 2, 1]

        first = coll.upsert.call_args_list[0].args[0][0]
        assert first.id == "doc_1_chunk_000"
        assert first.payload["content"] == "piece 0"
        assert first.payload["document_id"] == "doc_1"

    @pytest.mark.asyncio
    async def test_count_mismatch(self):
        gateway = VectorStoreGateway(mock_collection(), dimension=3)
        await gateway.initialize()

        with pytest.raises(ValidationFailed):
            await gateway.upsert(build_chunks("d", ["a", "b"]), vectors_for(1))

    @pytest.mark.asyncio
    async def test_wrong_vector_dimension_is_fatal(self):
        gateway = VectorStoreGateway(mock_collection(), dimension=3)
        await gateway.initialize()

        with pytest.raises(ConfigurationFatal):
            await gateway.upsert(build_chunks("d", ["a"]), vectors_for(1, dimension=4))

    @pytest.mark.asyncio
    async def test_index_failure_propagates(self):
        coll = mock_collection()
        coll.upsert.side_effect = RuntimeError("disk full")
        gateway = VectorStoreGateway(coll, dimension=3)
        await gateway.initialize()

        with pytest.raises(VectorStoreError):
            await gateway.upsert(build_chunks("d", ["a"]), vectors_for(1))

    @pytest.mark.asyncio
    async def test_unavailable_gateway_rejects_writes(self):
        gateway = VectorStoreGateway(mock_collection(), dimension=3)

        with pytest.raises(ProviderUnavailable):
            await gateway.upsert(build_chunks("d", ["a"]), vectors_for(1))


class TestSearch:
    """Reads and the threshold guarantee."""

    @pytest.mark.asyncio
    async def test_drops_hits_below_threshold(self):
        coll = mock_collection()
        coll.search.return_value = [
            ScoredPoint(id="a", score=0.9, payload={"content": "A", "source": "a.txt"}),
            ScoredPoint(id="b", score=0.5, payload={"content": "B"}),
            ScoredPoint(id="c", score=0.8, payload={"content": "C"}),
        ]
        gateway = VectorStoreGateway(coll, dimension=3)
        await gateway.initialize()

        hits = await gateway.search([1.0, 0.0, 0.0], limit=5, threshold=0.7)

        assert [h.chunk_id for h in hits] == ["a", "c"]
        assert hits[0].content == "A"
        assert hits[0].source == "a.txt"
        assert hits[1].source == "Unknown"
        assert hits[0].metadata["chunk_id"] == "a"
        assert "content" not in hits[0].metadata
        assert all(h.score >= 0.7 for h in hits)

    @pytest.mark.asyncio
    async def test_failure_yields_empty_result(self):
        coll = mock_collection()
        coll.search.side_effect = TimeoutError("slow")
        gateway = VectorStoreGateway(coll, dimension=3)
        await gateway.initialize()

        assert await gateway.search([1.0, 0.0, 0.0], limit=5, threshold=0.7) == []

    @pytest.mark.asyncio
    async def test_end_to_end_with_faiss(self):
        gateway = VectorStoreGateway(FaissCollection("docs"), dimension=3)
        await gateway.initialize()
        chunks = build_chunks("doc_1", ["near", "far"], metadata={"source": "x.txt"})
        vectors = [
            EmbeddingVector(values=[1.0, 0.0, 0.0], provider_model="m"),
            EmbeddingVector(values=[0.0, 1.0, 0.0], provider_model="m"),
        ]
        await gateway.upsert(chunks, vectors)

        hits = await gateway.search([1.0, 0.1, 0.0], limit=5, threshold=0.7)

        assert [h.content for h in hits] == ["near"]
        assert hits[0].metadata["document_id"] == "doc_1"


class TestDelete:
    """Removal by chunk id or document."""

    @pytest.mark.asyncio
    async def test_requires_exactly_one_selector(self):
        gateway = VectorStoreGateway(mock_collection(), dimension=3)
        await gateway.initialize()

        with pytest.raises(ValidationFailed):
            await gateway.delete()
        with pytest.raises(ValidationFailed):
            await gateway.delete(chunk_ids=["a"], document_id="doc_1")

    @pytest.mark.asyncio
    async def test_delete_by_document(self):
        coll = mock_collection()
        coll.delete.return_value = 3
        gateway = VectorStoreGateway(coll, dimension=3)
        await gateway.initialize()

        assert await gateway.delete(document_id="doc_1") == 3
        coll.delete.assert_awaited_once_with(filter={"document_id": "doc_1"})

    @pytest.mark.asyncio
    async def test_failure_propagates(self):
        coll = mock_collection()
        coll.delete.side_effect = RuntimeError("locked")
        gateway = VectorStoreGateway(coll, dimension=3)
        await gateway.initialize()

        with pytest.raises(VectorStoreError):
            await gateway.delete(chunk_ids=["a"])


@pytest.mark.asyncio
async def test_stats():
    gateway = VectorStoreGateway(FaissCollection("docs"), dimension=3)
    await gateway.initialize()

    stats = await gateway.stats()

    assert stats == {
        "collection": "docs",
        "count": 0,
        "dimension": 3,
        "metric": "cosine",
    }
