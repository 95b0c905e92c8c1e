"""
LLM Provider Client

Common interface for chat-completion providers. Each provider builds its own
native request and normalises its own native response; the HTTP round trip
is shared here.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx

from .models import GenerationOptions, GenerationResult, PromptMessage

OPTION_NAMES = ("max_tokens", "temperature", "top_p", "top_k", "stop_sequences")


class ChatProvider(ABC):
    """
    One chat-completion provider.

    Subclasses set ``name``, ``default_base_url``, ``known_models`` and
    ``supported_options`` and implement ``build_request`` and ``normalize``.
    """

    name: str = ""
    default_base_url: str = ""
    known_models: Tuple[str, ...] = ()
    supported_options: Tuple[str, ...] = OPTION_NAMES

    # Native finish reason -> canonical finish reason
    finish_reasons: Mapping[str, str] = {}

    def __init__(
        self,
        api_key: str,
        default_model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 180.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.default_model = default_model or self.known_models[0]
        self.base_url = (base_url or self.default_base_url).rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def models(self) -> List[str]:
        """Default model first, then the other known models."""
        ordered = [self.default_model]
        ordered.extend(m for m in self.known_models if m != self.default_model)
        return ordered

    async def complete(
        self,
        messages: Sequence[PromptMessage],
        model: str,
        options: GenerationOptions,
    ) -> Dict[str, Any]:
        """
        Send one request and return the provider's raw JSON response.

        Raises httpx errors unchanged; the orchestrator wraps them.
        """
        url, payload, headers = self.build_request(messages, model, options)

        async with httpx.AsyncClient(
            timeout=options.timeout or self.timeout,
            transport=self._transport,
        ) as client:
            resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        return resp.json()

    @abstractmethod
    def build_request(
        self,
        messages: Sequence[PromptMessage],
        model: str,
        options: GenerationOptions,
    ) -> Tuple[str, Dict[str, Any], Dict[str, str]]:
        """Return ``(url, json_payload, headers)`` for one call."""

    @abstractmethod
    def normalize(self, raw: Dict[str, Any], model: str) -> GenerationResult:
        """Map a raw response to the canonical result."""

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def option_values(self, options: GenerationOptions) -> Dict[str, Any]:
        """Options that are both set and supported by this provider."""
        values = {}
        for key in self.supported_options:
            value = getattr(options, key)
            if value is not None:
                values[key] = value
        return values

    def canonical_finish_reason(self, raw_reason: Optional[str]) -> str:
        if not raw_reason:
            return "stop"
        return self.finish_reasons.get(raw_reason, raw_reason.lower())

    @staticmethod
    def split_system(
        messages: Sequence[PromptMessage],
    ) -> Tuple[Optional[str], List[PromptMessage]]:
        """Separate system messages from the conversation turns."""
        system_parts = [m.content for m in messages if m.role == "system"]
        rest = [m for m in messages if m.role != "system"]
        system = "\n\n".join(system_parts) if system_parts else None
        return system, rest
