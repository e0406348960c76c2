from __future__ import annotations

from .constants import LOGGER
from .errors import (
    HandshakeError,
    MissingParameter,
    NotFoundOrExpired,
    TokenMismatch,
    UpstreamFailure,
)
from .handoff import HandoffBridge
from .models import HandoffResult, InitiateResult, PendingAuthRequest, UserRecord
from .registry import PendingRequestRegistry
from .state import redact_state
from .token_binding import hash_token
from .urls import build_auth_url


class HandshakeCoordinator:
    """Protocol logic of the extension handshake.

    A record moves from PENDING (created by ``initiate``) to AUTHENTICATED
    (``bind`` touched it after a successful login) and finally to EXPIRED
    once its age exceeds the registry TTL. Nothing deletes a record on
    hand-off, so reloading the bridging flow keeps working until expiry.
    """

    def __init__(self, registry: PendingRequestRegistry, bridge: HandoffBridge) -> None:
        self.registry = registry
        self.bridge = bridge

    async def initiate(
        self,
        extension_id: str | None,
        redirect_url: str | None = None,
        auth_token: str | None = None,
    ) -> InitiateResult:
        if not extension_id:
            raise MissingParameter("extensionId is required.")

        token_hash = hash_token(auth_token) if auth_token else None
        state = await self.registry.create(
            extension_id,
            redirect_url=redirect_url,
            token_hash=token_hash,
        )
        LOGGER.info(
            "Extension handshake initiated state=%s extension_id=%s bound=%s",
            redact_state(state),
            extension_id,
            token_hash is not None,
        )
        return InitiateResult(state=state, auth_url=build_auth_url(state, redirect_url))

    async def poll(self, state: str | None) -> PendingAuthRequest:
        if not state:
            raise MissingParameter("state is required.")
        # Touch so a multi-step login (or a reload) does not outlive the record.
        record = await self.registry.touch(state)
        if record is None:
            raise NotFoundOrExpired()
        return record

    async def verify(self, state: str | None, token: str | None = None) -> PendingAuthRequest:
        if not state:
            raise MissingParameter("state is required.")
        record = await self.registry.get(state)
        if record is None:
            raise NotFoundOrExpired()
        if not await self.registry.verify_token(state, token):
            raise TokenMismatch()
        return record

    async def bind(
        self,
        state: str | None,
        user: UserRecord,
        redirect_override: str | None = None,
    ) -> HandoffResult:
        if not state:
            raise MissingParameter("state is required.")

        record = await self.registry.touch(state)
        if record is None:
            raise NotFoundOrExpired()

        client_redirect = redirect_override or record.redirect_url
        try:
            credential = self.bridge.mint(user, state)
            redirect_url = self.bridge.bridge_url(credential, client_redirect)
        except HandshakeError:
            raise
        except Exception as error:
            LOGGER.exception("Credential minting failed state=%s", redact_state(state))
            raise UpstreamFailure() from error

        LOGGER.info(
            "Extension handshake bound state=%s extension_id=%s user_id=%s",
            redact_state(state),
            record.extension_id,
            user.id,
        )
        return HandoffResult(
            redirect_url=redirect_url,
            credential=credential,
            client_redirect=client_redirect,
            dashboard_url=self.bridge.dashboard_url,
        )
