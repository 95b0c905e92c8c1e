"""
Usage Statistics

In-process counters for requests, response times and token usage.

Metrics Tracked
---------------
- Requests (total / successful / failed) and average response time
- Chat turns and fallback answers
- Provider-reported tokens per model
- Estimated embedding tokens (about four characters per token)
- Documents and chunks ingested
"""

from __future__ import annotations

import math
from collections import Counter
from datetime import datetime, timezone
from threading import RLock
from typing import Any, Dict


def estimate_tokens(text: str) -> int:
    """Rough token count for providers that do not report usage."""
    return math.ceil(len(text) / 4)


class UsageStats:
    """Thread-safe usage counters."""

    def __init__(self) -> None:
        self._lock = RLock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.started_at = datetime.now(timezone.utc)
            self.requests_total = 0
            self.requests_successful = 0
            self.requests_failed = 0
            self._response_time_total_ms = 0.0
            self.chat_turns = 0
            self.fallback_answers = 0
            self.tokens_by_model: Counter = Counter()
            self.embedding_tokens_estimated = 0
            self.documents_ingested = 0
            self.chunks_ingested = 0

    def record_request(self, success: bool, response_time_ms: float) -> None:
        with self._lock:
            self.requests_total += 1
            if success:
                self.requests_successful += 1
            else:
                self.requests_failed += 1
            self._response_time_total_ms += response_time_ms

    def record_generation(self, model: str, tokens_used: int, fallback: bool = False) -> None:
        with self._lock:
            self.chat_turns += 1
            if fallback:
                self.fallback_answers += 1
            self.tokens_by_model[model] += tokens_used

    def record_embedding(self, text: str) -> None:
        with self._lock:
            self.embedding_tokens_estimated += estimate_tokens(text)

    def record_ingestion(self, chunk_count: int) -> None:
        with self._lock:
            self.documents_ingested += 1
            self.chunks_ingested += chunk_count

    @property
    def average_response_time_ms(self) -> float:
        with self._lock:
            if not self.requests_total:
                return 0.0
            return self._response_time_total_ms / self.requests_total

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "started_at": self.started_at.isoformat(),
                "requests": {
                    "total": self.requests_total,
                    "successful": self.requests_successful,
                    "failed": self.requests_failed,
                    "average_response_time_ms": round(self.average_response_time_ms, 2),
                },
                "chat": {
                    "turns": self.chat_turns,
                    "fallback_answers": self.fallback_answers,
                },
                "tokens": {
                    "total": sum(self.tokens_by_model.values()),
                    "by_model": dict(self.tokens_by_model),
                    "embedding_estimated": self.embedding_tokens_estimated,
                },
                "documents": {
                    "ingested": self.documents_ingested,
                    "chunks": self.chunks_ingested,
                },
            }
