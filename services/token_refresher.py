"""
Token List Refresher

Optional background task that refetches the token list on a fixed period so
request traffic usually finds a fresh snapshot. Refreshes go through the
gateway's single-flight path, so they never duplicate a fetch a request has
already started, and a failed refresh leaves the previous entry in place.
"""

import asyncio
import contextlib
from typing import Optional

from core.errors import GatewayError
from core.gateway import MarketDataGateway
from core.logging import get_logger


class TokenListRefresher:
    """
    Background service that keeps the cached token list warm.
    """

    def __init__(self, gateway: MarketDataGateway, interval_seconds: float) -> None:
        self._logger = get_logger(__name__)
        self._gateway = gateway
        self._interval = interval_seconds
        self._running = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self.refreshes = 0
        self.failures = 0

    @property
    def running(self) -> bool:
        return self._running.is_set()

    async def start(self) -> None:
        if self._running.is_set():
            return
        self._running.set()
        self._logger.info(f"Starting token list refresher (every {self._interval}s)...")
        self._task = asyncio.create_task(self._run(), name="token_list_refresher")

    async def stop(self) -> None:
        if not self._running.is_set():
            return
        self._logger.info("Stopping token list refresher...")
        self._running.clear()
        if self._task:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

    # ============================================
    # Core Loop
    # ============================================

    async def _run(self) -> None:
        while self._running.is_set():
            await self.refresh_once()
            await asyncio.sleep(self._interval)

    async def refresh_once(self) -> bool:
        """Run a single refresh; returns False if the upstream call failed."""
        try:
            result = await self._gateway.refresh_token_list()
        except GatewayError as e:
            self.failures += 1
            self._logger.warning(f"Token list refresh failed ({e.code}): {e.message}")
            return False

        self.refreshes += 1
        self._logger.debug(f"Token list refreshed: {len(result.value)} tokens")
        return True
