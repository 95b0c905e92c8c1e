"""
Background session expiry.
"""

import asyncio
import logging
from typing import List, Optional

from .store import SessionStore

logger = logging.getLogger("rag.sessions")


class SessionSweeper:
    """
    Periodically removes expired sessions.

    Owned explicitly by the application lifecycle: ``start()`` on startup,
    ``await stop()`` on shutdown.
    """

    def __init__(self, store: SessionStore, interval_seconds: float = 300.0) -> None:
        self._store = store
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self._run(), name="session-sweeper")
            logger.info("Session sweeper started (interval=%ss)", self.interval_seconds)
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Session sweeper stopped")

    async def run_once(self) -> List[str]:
        """One sweep pass, off the event loop thread."""
        return await asyncio.to_thread(self._store.sweep_expired)

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception:
                logger.exception("Unexpected error in session sweeper")
                continue
