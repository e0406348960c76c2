from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Callable

from .constants import LOGGER, STATE_TTL_SECONDS
from .errors import MissingParameter, NotFoundOrExpired
from .models import PendingAuthRequest
from .state import issue_state, redact_state
from .token_binding import token_matches


class PendingRequestRegistry:
    """In-memory store of in-flight extension handshakes keyed by ``state``.

    Every read-modify-write goes through a single ``asyncio.Lock`` so that a
    ``touch`` racing a sweeper eviction either refreshes the record or finds
    it gone. Records older than ``ttl_seconds`` read as absent even before the
    sweeper removes them.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = STATE_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
        issue: Callable[[], str] = issue_state,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._issue = issue
        self._requests: dict[str, PendingAuthRequest] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._requests)

    def _is_expired(self, record: PendingAuthRequest, now: float) -> bool:
        return now - record.created_at > self.ttl_seconds

    def _live(self, state: str, now: float) -> PendingAuthRequest | None:
        record = self._requests.get(state)
        if record is None or self._is_expired(record, now):
            return None
        return record

    async def create(
        self,
        extension_id: str,
        redirect_url: str | None = None,
        token_hash: str | None = None,
    ) -> str:
        if not extension_id:
            raise MissingParameter("extensionId is required.")

        async with self._lock:
            state = self._issue()
            while state in self._requests:
                state = self._issue()
            self._requests[state] = PendingAuthRequest(
                state=state,
                extension_id=extension_id,
                redirect_url=redirect_url or None,
                token_hash=token_hash,
                created_at=self._clock(),
            )
        LOGGER.debug(
            "Stored pending request state=%s extension_id=%s",
            redact_state(state),
            extension_id,
        )
        return state

    async def get(self, state: str) -> PendingAuthRequest | None:
        async with self._lock:
            return self._live(state, self._clock())

    async def touch(self, state: str) -> PendingAuthRequest | None:
        async with self._lock:
            now = self._clock()
            record = self._live(state, now)
            if record is None:
                return None
            refreshed = dataclasses.replace(record, created_at=max(record.created_at, now))
            self._requests[state] = refreshed
            return refreshed

    async def delete(self, state: str) -> bool:
        async with self._lock:
            return self._requests.pop(state, None) is not None

    async def verify_token(self, state: str, supplied_token: str | None) -> bool:
        async with self._lock:
            record = self._live(state, self._clock())
        if record is None:
            raise NotFoundOrExpired()
        return token_matches(record.token_hash, supplied_token)

    # -- sweeper support -------------------------------------------------------

    async def expired_states(self, now: float | None = None) -> list[str]:
        async with self._lock:
            current = self._clock() if now is None else now
            return [
                state
                for state, record in self._requests.items()
                if self._is_expired(record, current)
            ]

    async def evict_if_expired(self, state: str, now: float | None = None) -> bool:
        async with self._lock:
            current = self._clock() if now is None else now
            record = self._requests.get(state)
            if record is None or not self._is_expired(record, current):
                return False
            del self._requests[state]
            return True
