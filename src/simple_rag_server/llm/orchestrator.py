"""
Generation Orchestrator

Selects a provider and model for each request, calls it, and returns a
normalised result.

Selection Rules
---------------
- ``"auto"``: first available provider in probe order, its default model
- ``"<provider>:<model>"`` / ``"<provider>:auto"``: that provider explicitly
- bare model name: looked up in the ModelRegistry; unknown names are rejected

There is no automatic failover: a failed call surfaces as GenerationFailed
and the caller decides what to do.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple

from ..core.errors import GenerationFailed, ProviderUnavailable, ValidationFailed
from .client import ChatProvider
from .models import GenerationOptions, GenerationResult, PromptMessage
from .providers import PROVIDER_CLASSES
from .registry import ModelRegistry, default_registry

logger = logging.getLogger("rag.generation")

HEALTH_CHECK_PROMPT = 'Hello, this is a health check. Please respond with "OK".'


class GenerationOrchestrator:
    """
    Routes generation requests across the configured providers.

    Parameters
    ----------
    providers : Sequence[ChatProvider]
        Available adapters, in probe order.

    registry : Optional[ModelRegistry]
        Model name lookup. Each provider's models are registered into it.

    health_check_timeout : float
        Timeout for health probes, shorter than the generation timeout.
    """

    def __init__(
        self,
        providers: Sequence[ChatProvider],
        registry: Optional[ModelRegistry] = None,
        health_check_timeout: float = 30.0,
    ) -> None:
        self._providers: Dict[str, ChatProvider] = {}
        for provider in providers:
            self._providers[provider.name] = provider

        self._registry = registry or default_registry()
        for provider in self._providers.values():
            self._registry.register_many(provider.models(), provider.name)

        self.health_check_timeout = health_check_timeout

    @property
    def available_providers(self) -> List[str]:
        return list(self._providers)

    def is_available(self) -> bool:
        return bool(self._providers)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def resolve(self, model: Optional[str] = None) -> Tuple[ChatProvider, str]:
        """
        Resolve a model selector to ``(provider, model_name)``.

        Raises
        ------
        ProviderUnavailable
            If no provider is configured, or the selected one is not.

        ValidationFailed
            If the selector names an unknown provider or model.
        """
        if not self._providers:
            raise ProviderUnavailable("No AI providers available.")

        selector = (model or "auto").strip()

        if selector == "auto":
            provider = next(iter(self._providers.values()))
            return provider, provider.default_model

        if ":" in selector:
            provider_name, _, model_name = selector.partition(":")
            if provider_name not in PROVIDER_CLASSES:
                raise ValidationFailed(f"Unknown provider '{provider_name}'.")
            if not model_name:
                raise ValidationFailed(f"Missing model name in '{selector}'.")
            provider = self._require_provider(provider_name)
            if model_name == "auto":
                return provider, provider.default_model
            return provider, model_name

        provider_name = self._registry.provider_for(selector)
        if provider_name is None:
            raise ValidationFailed(f"Unknown model '{selector}'.")
        return self._require_provider(provider_name), selector

    def _require_provider(self, name: str) -> ChatProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderUnavailable(f"Provider '{name}' is not configured.")
        return provider

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate(
        self,
        messages: Sequence[PromptMessage],
        options: Optional[GenerationOptions] = None,
    ) -> GenerationResult:
        """
        Generate a completion for ``messages``.

        Raises
        ------
        ValidationFailed
            For an empty prompt or an unknown model selector.

        ProviderUnavailable
            If no provider can serve the request.

        GenerationFailed
            If the provider call or its response normalisation fails.
        """
        if not messages:
            raise ValidationFailed("Cannot generate from an empty message list.")

        options = options or GenerationOptions()
        provider, model = self.resolve(options.model)

        started = time.perf_counter()
        try:
            raw = await provider.complete(messages, model, options)
            result = provider.normalize(raw, model)
        except Exception as exc:
            logger.exception(
                "Generation failed (provider=%s, model=%s): %s",
                provider.name,
                model,
                type(exc).__name__,
            )
            raise GenerationFailed(provider.name, model, type(exc).__name__) from exc

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "Generated with %s:%s (tokens=%d, finish=%s, %d ms)",
            provider.name,
            result.provider_model,
            result.tokens_used,
            result.finish_reason,
            elapsed_ms,
        )
        return result.model_copy(update={"processing_time_ms": elapsed_ms})

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    async def health_check(self) -> Dict[str, bool]:
        """
        Probe every provider with a tiny request. Not for the request path.
        """
        status: Dict[str, bool] = {}
        probe = [PromptMessage(role="user", content=HEALTH_CHECK_PROMPT)]

        for name in self._providers:
            options = GenerationOptions(
                model=f"{name}:auto",
                max_tokens=10,
                temperature=0.0,
                timeout=self.health_check_timeout,
            )
            try:
                result = await self.generate(probe, options)
                status[name] = bool(result.content.strip())
            except GenerationFailed as exc:
                logger.warning("Health check failed for %s: %s", name, exc)
                status[name] = False

        return status

    def available_models(self) -> Dict[str, List[str]]:
        return {name: p.models() for name, p in self._providers.items()}

    def default_model(self) -> Optional[str]:
        if not self._providers:
            return None
        provider = next(iter(self._providers.values()))
        return f"{provider.name}:{provider.default_model}"
