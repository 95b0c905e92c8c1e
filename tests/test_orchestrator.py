import pytest

from simple_rag_server.core.errors import (
    GenerationFailed,
    ProviderUnavailable,
    ValidationFailed,
)
from simple_rag_server.llm.models import GenerationOptions, PromptMessage
from simple_rag_server.llm.orchestrator import GenerationOrchestrator
from simple_rag_server.llm.registry import ModelRegistry, default_registry

from fakes import FakeProvider

PROMPT = [PromptMessage(role="user", content="Hello")]


def make_orchestrator(*providers):
    return GenerationOrchestrator(providers, registry=ModelRegistry())


class TestResolve:
    """Model selector resolution."""

    def test_auto_uses_first_provider(self):
        google = FakeProvider("google", models=("gemini-a", "gemini-b"))
        openai = FakeProvider("openai", models=("gpt-a",))
        orchestrator = make_orchestrator(google, openai)

        provider, model = orchestrator.resolve("auto")

        assert provider is google
        assert model == "gemini-a"

    def test_explicit_provider_and_model(self):
        openai = FakeProvider("openai", models=("gpt-a",))
        orchestrator = make_orchestrator(FakeProvider("google"), openai)

        assert orchestrator.resolve("openai:gpt-custom") == (openai, "gpt-custom")
        assert orchestrator.resolve("openai:auto") == (openai, "gpt-a")

    def test_bare_model_uses_registry(self):
        openai = FakeProvider("openai", models=("gpt-a",))
        orchestrator = make_orchestrator(FakeProvider("google", models=("gemini-a",)), openai)

        assert orchestrator.resolve("gpt-a") == (openai, "gpt-a")

    @pytest.mark.parametrize("selector", ["mystery-model", "foo:bar", "openai:"])
    def test_unknown_selector_rejected(self, selector):
        orchestrator = make_orchestrator(FakeProvider("openai", models=("gpt-a",)))

        with pytest.raises(ValidationFailed):
            orchestrator.resolve(selector)

    def test_registered_model_of_unconfigured_provider(self):
        registry = ModelRegistry({"claude-x": "anthropic"})
        orchestrator = GenerationOrchestrator([FakeProvider("openai")], registry=registry)

        with pytest.raises(ProviderUnavailable):
            orchestrator.resolve("claude-x")
        with pytest.raises(ProviderUnavailable):
            orchestrator.resolve("cohere:auto")

    def test_no_providers(self):
        orchestrator = make_orchestrator()

        assert orchestrator.is_available() is False
        assert orchestrator.default_model() is None
        with pytest.raises(ProviderUnavailable):
            orchestrator.resolve("auto")


class TestGenerate:
    """Generation calls and failure surfacing."""

    @pytest.mark.asyncio
    async def test_generate_returns_normalised_result(self):
        provider = FakeProvider("google", reply="Hi there", tokens=11)
        orchestrator = make_orchestrator(provider)

        result = await orchestrator.generate(PROMPT, GenerationOptions(max_tokens=50))

        assert result.content == "Hi there"
        assert result.tokens_used == 11
        assert result.provider_name == "google"
        assert result.processing_time_ms >= 0

        _, model, options = provider.calls[0]
        assert model == "fake-model"
        assert options.max_tokens == 50

    @pytest.mark.asyncio
    async def test_failure_is_not_retried_elsewhere(self):
        failing = FakeProvider("google", fail=True)
        healthy = FakeProvider("openai")
        orchestrator = make_orchestrator(failing, healthy)

        with pytest.raises(GenerationFailed) as exc_info:
            await orchestrator.generate(PROMPT)

        assert exc_info.value.provider == "google"
        assert exc_info.value.model == "fake-model"
        assert healthy.calls == []

    @pytest.mark.asyncio
    async def test_unknown_model_makes_no_call(self):
        provider = FakeProvider("google")
        orchestrator = make_orchestrator(provider)

        with pytest.raises(ValidationFailed):
            await orchestrator.generate(PROMPT, GenerationOptions(model="nonexistent"))

        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_empty_prompt(self):
        orchestrator = make_orchestrator(FakeProvider("google"))

        with pytest.raises(ValidationFailed):
            await orchestrator.generate([])

    @pytest.mark.asyncio
    async def test_health_check(self):
        good = FakeProvider("google", reply="OK")
        bad = FakeProvider("openai", fail=True)
        orchestrator = make_orchestrator(good, bad)

        status = await orchestrator.health_check()

        assert status == {"google": True, "openai": False}
        _, _, options = good.calls[0]
        assert options.max_tokens == 10
        assert options.temperature == 0.0


def test_available_models():
    orchestrator = make_orchestrator(
        FakeProvider("google", models=("gemini-a", "gemini-b")),
        FakeProvider("cohere", models=("command-a",)),
    )

    assert orchestrator.available_providers == ["google", "cohere"]
    assert orchestrator.available_models() == {
        "google": ["gemini-a", "gemini-b"],
        "cohere": ["command-a"],
    }
    assert orchestrator.default_model() == "google:gemini-a"


class TestModelRegistry:
    """Explicit model to provider mapping."""

    def test_default_registry_knows_adapter_models(self):
        registry = default_registry()

        assert registry.provider_for("gpt-4o") == "openai"
        assert registry.provider_for("gemini-2.0-flash") == "google"
        assert registry.provider_for("claude-3-5-haiku-20241022") == "anthropic"
        assert registry.provider_for("command-r-plus-08-2024") == "cohere"
        assert "gpt-5-imaginary" not in registry

    def test_rejects_unknown_provider(self):
        with pytest.raises(ValueError):
            ModelRegistry().register("model-x", "unknown")

    def test_models_for(self):
        registry = ModelRegistry({"a": "openai", "b": "google", "c": "openai"})

        assert registry.models_for("openai") == ["a", "c"]
