"""
Model Registry

Explicit mapping from model name to the provider that serves it. A model
name that is not registered is rejected rather than guessed from its spelling.
"""

from __future__ import annotations

from threading import RLock
from typing import Dict, Iterable, Mapping, Optional

from ..config import PROVIDER_ORDER, Settings
from .providers import PROVIDER_CLASSES


class ModelRegistry:
    """Thread-safe ``model -> provider`` lookup."""

    def __init__(self, entries: Optional[Mapping[str, str]] = None) -> None:
        self._models: Dict[str, str] = {}
        self._lock = RLock()
        for model, provider in (entries or {}).items():
            self.register(model, provider)

    def register(self, model: str, provider: str) -> None:
        if provider not in PROVIDER_CLASSES:
            raise ValueError(f"Unknown provider: {provider}")
        with self._lock:
            self._models[model] = provider

    def register_many(self, models: Iterable[str], provider: str) -> None:
        for model in models:
            self.register(model, provider)

    def provider_for(self, model: str) -> Optional[str]:
        with self._lock:
            return self._models.get(model)

    def models_for(self, provider: str) -> list:
        with self._lock:
            return [m for m, p in self._models.items() if p == provider]

    def __contains__(self, model: object) -> bool:
        with self._lock:
            return model in self._models


def default_registry(config: Optional[Settings] = None) -> ModelRegistry:
    """Registry of every adapter's known models plus configured defaults."""
    registry = ModelRegistry()
    for name in PROVIDER_ORDER:
        registry.register_many(PROVIDER_CLASSES[name].known_models, name)
        if config is not None:
            registry.register(getattr(config, f"{name}_model"), name)
    return registry
