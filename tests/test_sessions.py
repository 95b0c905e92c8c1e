import asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from simple_rag_server.core.errors import SessionNotFound
from simple_rag_server.sessions.models import Message
from simple_rag_server.sessions.store import InMemorySessionBackend, SessionStore
from simple_rag_server.sessions.sweeper import SessionSweeper

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def message(content, role="user"):
    return Message(role=role, content=content, timestamp=T0)


class TestSessionStore:
    """Session lifecycle and history bounds."""

    def test_create_and_get(self):
        store = SessionStore()

        sid = store.create()
        session = store.get(sid)

        assert session is not None
        assert session.messages == []
        assert len(store) == 1

    def test_get_or_create_uses_requested_id(self):
        store = SessionStore()

        session, created = store.get_or_create("abc")
        again, created_again = store.get_or_create("abc")

        assert session.id == "abc"
        assert created is True
        assert created_again is False
        assert len(store) == 1

    def test_history_keeps_most_recent_messages_in_order(self):
        store = SessionStore(max_messages=10)
        sid = store.create()

        for i in range(15):
            store.append(sid, message(f"m{i}"))

        history = store.history(sid)
        assert [m.content for m in history] == [f"m{i}" for i in range(5, 15)]

    def test_reads_are_copies(self):
        store = SessionStore()
        sid = store.create()
        store.append(sid, message("first"))

        store.get(sid).messages.append(message("injected"))

        assert [m.content for m in store.history(sid)] == ["first"]

    def test_unknown_session(self):
        store = SessionStore()

        with pytest.raises(SessionNotFound):
            store.append("missing", message("hi"))
        with pytest.raises(SessionNotFound):
            store.history("missing")
        assert store.get("missing") is None

    def test_delete(self):
        store = SessionStore()
        sid = store.create()

        assert store.delete(sid) is True
        assert store.delete(sid) is False
        assert len(store) == 0

    def test_append_bumps_last_activity(self):
        clock = FakeClock()
        store = SessionStore(clock=clock)
        sid = store.create()

        clock.advance(minutes=5)
        session = store.append(sid, message("hi"))

        assert session.created_at == T0
        assert session.last_activity_at == T0 + timedelta(minutes=5)

    def test_invalid_cap(self):
        with pytest.raises(ValueError):
            SessionStore(max_messages=0)


class TestExpiry:
    """TTL sweeping with an injected clock."""

    def test_idle_session_is_swept_and_active_one_kept(self):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=3600, clock=clock)
        stale = store.create()

        clock.advance(hours=2)
        fresh = store.create()
        clock.advance(minutes=1)

        removed = store.sweep_expired()

        assert removed == [stale]
        assert store.get(stale) is None
        assert store.get(fresh) is not None

    def test_sweep_rechecks_candidates(self):
        class EagerBackend(InMemorySessionBackend):
            # Reports every session as a candidate
            def scan_expired(self, cutoff):
                return self.keys()

        store = SessionStore(ttl_seconds=60, backend=EagerBackend(), clock=FakeClock())
        sid = store.create()

        assert store.sweep_expired() == []
        assert store.get(sid) is not None


class TestSessionSweeper:
    """Background expiry task."""

    @pytest.mark.asyncio
    async def test_run_once(self):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        sid = store.create()
        clock.advance(minutes=2)

        removed = await SessionSweeper(store).run_once()

        assert removed == [sid]

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        clock = FakeClock()
        store = SessionStore(ttl_seconds=60, clock=clock)
        store.create()
        clock.advance(minutes=2)
        sweeper = SessionSweeper(store, interval_seconds=0.01)

        sweeper.start()
        assert sweeper.running is True
        await asyncio.sleep(0.1)
        await sweeper.stop()

        assert sweeper.running is False
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_survives_sweep_errors(self):
        store = MagicMock()
        store.sweep_expired.side_effect = RuntimeError("backend down")
        sweeper = SessionSweeper(store, interval_seconds=0.01)

        sweeper.start()
        await asyncio.sleep(0.1)
        assert sweeper.running is True
        await sweeper.stop()

        assert store.sweep_expired.call_count >= 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self):
        await SessionSweeper(SessionStore()).stop()
