"""
LLM Provider Adapters

One adapter per supported provider. Each knows how its API wants the prompt
shaped (inline system message or a separate field), which sampling options it
accepts under which names, and where its response keeps the text, the token
usage and the finish reason.

Token usage is taken from the provider's response only; a response without
usage reports 0.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

from ..config import PROVIDER_ORDER, Settings
from .client import ChatProvider
from .models import GenerationOptions, GenerationResult, PromptMessage

DEFAULT_ANTHROPIC_MAX_TOKENS = 1000


# ---------------------------------------------------------------------
# Google Gemini
# ---------------------------------------------------------------------

class GoogleProvider(ChatProvider):
    name = "google"
    default_base_url = "https://generativelanguage.googleapis.com/v1beta"
    known_models = (
        "gemini-2.0-flash",
        "gemini-2.0-flash-exp",
        "gemini-1.5-pro-002",
        "gemini-1.5-flash-002",
    )
    finish_reasons = {
        "STOP": "stop",
        "MAX_TOKENS": "length",
        "SAFETY": "content_filter",
        "RECITATION": "content_filter",
    }

    _config_names = {
        "max_tokens": "maxOutputTokens",
        "temperature": "temperature",
        "top_p": "topP",
        "top_k": "topK",
        "stop_sequences": "stopSequences",
    }

    def build_request(
        self,
        messages: Sequence[PromptMessage],
        model: str,
        options: GenerationOptions,
    ) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        system, turns = self.split_system(messages)

        payload: Dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.role == "assistant" else "user",
                    "parts": [{"text": m.content}],
                }
                for m in turns
            ],
        }
        if system:
            payload["systemInstruction"] = {"parts": [{"text": system}]}

        config = {
            self._config_names[key]: value
            for key, value in self.option_values(options).items()
        }
        if config:
            payload["generationConfig"] = config

        url = f"{self.base_url}/models/{model}:generateContent"
        return url, payload, {"x-goog-api-key": self.api_key}

    def normalize(self, raw: Dict[str, Any], model: str) -> GenerationResult:
        candidates = raw.get("candidates") or []
        if not candidates:
            raise ValueError("Gemini response contains no candidates.")

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        usage = raw.get("usageMetadata") or {}

        return GenerationResult(
            content="".join(part.get("text", "") for part in parts),
            provider_model=model,
            tokens_used=int(usage.get("totalTokenCount", 0)),
            finish_reason=self.canonical_finish_reason(candidate.get("finishReason")),
            provider_name=self.name,
        )


# ---------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------

class OpenAIProvider(ChatProvider):
    name = "openai"
    default_base_url = "https://api.openai.com/v1"
    known_models = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo")
    supported_options = ("max_tokens", "temperature", "top_p", "stop_sequences")
    finish_reasons = {
        "stop": "stop",
        "length": "length",
        "content_filter": "content_filter",
        "tool_calls": "tool_use",
    }

    def build_request(
        self,
        messages: Sequence[PromptMessage],
        model: str,
        options: GenerationOptions,
    ) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        for key, value in self.option_values(options).items():
            payload["stop" if key == "stop_sequences" else key] = value

        url = f"{self.base_url}/chat/completions"
        return url, payload, {"Authorization": f"Bearer {self.api_key}"}

    def normalize(self, raw: Dict[str, Any], model: str) -> GenerationResult:
        choice = raw["choices"][0]
        usage = raw.get("usage") or {}

        return GenerationResult(
            content=choice["message"].get("content") or "",
            provider_model=raw.get("model", model),
            tokens_used=int(usage.get("total_tokens", 0)),
            finish_reason=self.canonical_finish_reason(choice.get("finish_reason")),
            provider_name=self.name,
        )


# ---------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------

class AnthropicProvider(ChatProvider):
    name = "anthropic"
    default_base_url = "https://api.anthropic.com/v1"
    api_version = "2023-06-01"
    known_models = ("claude-3-5-haiku-20241022", "claude-3-5-sonnet-20241022")
    finish_reasons = {
        "end_turn": "stop",
        "stop_sequence": "stop",
        "max_tokens": "length",
        "tool_use": "tool_use",
    }

    def build_request(
        self,
        messages: Sequence[PromptMessage],
        model: str,
        options: GenerationOptions,
    ) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        system, turns = self.split_system(messages)
        values = self.option_values(options)

        # max_tokens is mandatory for this API
        payload: Dict[str, Any] = {
            "model": model,
            "max_tokens": values.pop("max_tokens", DEFAULT_ANTHROPIC_MAX_TOKENS),
            "messages": [{"role": m.role, "content": m.content} for m in turns],
        }
        if system:
            payload["system"] = system
        payload.update(values)

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }
        return f"{self.base_url}/messages", payload, headers

    def normalize(self, raw: Dict[str, Any], model: str) -> GenerationResult:
        blocks = raw["content"]
        usage = raw.get("usage") or {}
        tokens = int(usage.get("input_tokens", 0)) + int(usage.get("output_tokens", 0))

        return GenerationResult(
            content="".join(b.get("text", "") for b in blocks if b.get("type") == "text"),
            provider_model=raw.get("model", model),
            tokens_used=tokens,
            finish_reason=self.canonical_finish_reason(raw.get("stop_reason")),
            provider_name=self.name,
        )


# ---------------------------------------------------------------------
# Cohere
# ---------------------------------------------------------------------

class CohereProvider(ChatProvider):
    name = "cohere"
    default_base_url = "https://api.cohere.com/v2"
    known_models = ("command-r-plus-08-2024", "command-r-08-2024")
    finish_reasons = {
        "COMPLETE": "stop",
        "STOP_SEQUENCE": "stop",
        "MAX_TOKENS": "length",
        "ERROR_TOXIC": "content_filter",
        "TOOL_CALL": "tool_use",
    }

    _option_names = {
        "max_tokens": "max_tokens",
        "temperature": "temperature",
        "top_p": "p",
        "top_k": "k",
        "stop_sequences": "stop_sequences",
    }

    def build_request(
        self,
        messages: Sequence[PromptMessage],
        model: str,
        options: GenerationOptions,
    ) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
        }
        for key, value in self.option_values(options).items():
            payload[self._option_names[key]] = value

        url = f"{self.base_url}/chat"
        return url, payload, {"Authorization": f"Bearer {self.api_key}"}

    def normalize(self, raw: Dict[str, Any], model: str) -> GenerationResult:
        blocks = raw["message"].get("content") or []
        usage = raw.get("usage") or {}
        counts = usage.get("tokens") or usage.get("billed_units") or {}
        tokens = int(counts.get("input_tokens", 0)) + int(counts.get("output_tokens", 0))

        return GenerationResult(
            content="".join(b.get("text", "") for b in blocks if b.get("type") == "text"),
            provider_model=model,
            tokens_used=tokens,
            finish_reason=self.canonical_finish_reason(raw.get("finish_reason")),
            provider_name=self.name,
        )


# ---------------------------------------------------------------------
# Probe
# ---------------------------------------------------------------------

PROVIDER_CLASSES = {
    "google": GoogleProvider,
    "openai": OpenAIProvider,
    "anthropic": AnthropicProvider,
    "cohere": CohereProvider,
}


def build_providers(
    config: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> List[ChatProvider]:
    """
    Instantiate one adapter per configured credential, in probe order.

    The resulting order is the order ``"auto"`` selection tries.
    """
    providers: List[ChatProvider] = []
    for name in PROVIDER_ORDER:
        api_key = config.provider_api_key(name)
        if not api_key:
            continue
        providers.append(
            PROVIDER_CLASSES[name](
                api_key=api_key,
                default_model=getattr(config, f"{name}_model"),
                timeout=config.generation_timeout,
                transport=transport,
            )
        )
    return providers
