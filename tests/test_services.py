import pytest

from simple_rag_server.core.errors import ConfigurationFatal
from simple_rag_server.services import build_collection, build_services
from simple_rag_server.vectors.index import FaissCollection

from fakes import make_settings


def test_requires_a_provider():
    with pytest.raises(ConfigurationFatal):
        build_services(make_settings(), collection=FaissCollection())


def test_wires_configured_providers():
    config = make_settings(anthropic_api_key="a", google_api_key="g")

    services = build_services(config, collection=FaissCollection())

    assert services.generator.available_providers == ["google", "anthropic"]
    assert services.embedder.is_available() is True
    assert services.vector_store.is_available() is False


def test_embeddings_disabled_without_key():
    config = make_settings(cohere_api_key="c")

    services = build_services(config, collection=FaissCollection())

    assert services.embedder.is_available() is False


@pytest.mark.asyncio
async def test_startup_and_shutdown(tmp_path):
    config = make_settings(
        openai_api_key="o",
        vector_index_path=str(tmp_path / "index.bin"),
        vector_meta_path=str(tmp_path / "meta.json"),
    )
    services = build_services(config)

    await services.startup()
    assert services.vector_store.is_available() is True
    assert services.sweeper.running is True

    await services.shutdown()
    assert services.sweeper.running is False
    assert (tmp_path / "index.bin").exists()

    reloaded = build_collection(config)
    assert await reloaded.exists() is True


def test_pgvector_requires_database_url():
    config = make_settings(vector_backend="pgvector", database_url=None)

    with pytest.raises(ConfigurationFatal):
        build_collection(config)
