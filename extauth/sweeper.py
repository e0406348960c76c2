from __future__ import annotations

import asyncio
import logging

from .constants import LOGGER, SWEEP_INTERVAL_SECONDS
from .registry import PendingRequestRegistry
from .state import redact_state


class ExpirySweeper:
    def __init__(
        self,
        registry: PendingRequestRegistry,
        *,
        interval_seconds: float = SWEEP_INTERVAL_SECONDS,
        sleep=asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self._registry = registry
        self._interval_seconds = interval_seconds
        self._sleep = sleep
        self._logger = logger or LOGGER
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self) -> int:
        """Evict every record older than the registry TTL.

        Takes a snapshot of expired keys first, then evicts each one with a
        fresh age check, so a record touched in between survives.
        """
        evicted = 0
        for state in await self._registry.expired_states():
            if await self._registry.evict_if_expired(state):
                self._logger.debug("Evicted expired handshake state=%s", redact_state(state))
                evicted += 1

        self._logger.info(
            "Handshake sweep evicted=%s remaining=%s",
            evicted,
            len(self._registry),
        )
        return evicted

    async def _run(self) -> None:
        while True:
            await self._sleep(self._interval_seconds)
            try:
                await self.sweep()
            except Exception:
                self._logger.exception("Handshake sweep failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="extauth-expiry-sweeper")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
