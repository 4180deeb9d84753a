"""Background upstream health probe, independent of user traffic."""

from __future__ import annotations

import asyncio
import logging

from .upstream_client import UpstreamClient

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Probe the upstream immediately, then once per interval."""

    def __init__(self, client: UpstreamClient, *, interval_seconds: float):
        self._client = client
        self._interval = interval_seconds
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self._task is not None:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("Health monitor started (interval=%.0fs)", self._interval)

    async def stop(self) -> None:
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self._client.probe()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Health probe iteration failed")
            await asyncio.sleep(self._interval)
