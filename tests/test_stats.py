import pytest

from simple_rag_server.stats.usage import UsageStats, estimate_tokens


class TestUsageStats:
    """In-process usage counters."""

    def test_request_counters(self):
        usage = UsageStats()

        usage.record_request(True, 100.0)
        usage.record_request(True, 50.0)
        usage.record_request(False, 30.0)

        requests = usage.snapshot()["requests"]
        assert requests == {
            "total": 3,
            "successful": 2,
            "failed": 1,
            "average_response_time_ms": 60.0,
        }

    def test_tokens_by_model(self):
        usage = UsageStats()

        usage.record_generation("gpt-4o", 120)
        usage.record_generation("gpt-4o", 30)
        usage.record_generation("fallback", 0, fallback=True)
        usage.record_embedding("abcdefgh")

        snapshot = usage.snapshot()
        assert snapshot["chat"] == {"turns": 3, "fallback_answers": 1}
        assert snapshot["tokens"]["total"] == 150
        assert snapshot["tokens"]["by_model"] == {"gpt-4o": 150, "fallback": 0}
        assert snapshot["tokens"]["embedding_estimated"] == 2

    def test_reset(self):
        usage = UsageStats()
        usage.record_ingestion(4)

        usage.reset()

        assert usage.snapshot()["documents"] == {"ingested": 0, "chunks": 0}
        assert usage.average_response_time_ms == 0.0


@pytest.mark.parametrize("text, expected", [("", 0), ("abc", 1), ("abcd", 1), ("abcde", 2)])
def test_estimate_tokens(text, expected):
    assert estimate_tokens(text) == expected
