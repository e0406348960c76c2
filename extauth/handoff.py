from __future__ import annotations

import json
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass

from . import signed_token
from .constants import BRIDGE_PATH, CREDENTIAL_TTL_SECONDS, DASHBOARD_PATH
from .errors import BridgeParamsError
from .models import IssuedCredential, UserRecord
from .urls import append_query_params, join_public_url


@dataclass(frozen=True)
class BridgePayload:
    token: str
    user_data: dict
    state: str
    dashboard_url: str | None = None
    client_redirect: str | None = None

    def event_detail(self) -> dict:
        """Structured payload the bridging page exposes to the extension."""
        return {
            "success": True,
            "token": self.token,
            "userData": self.user_data,
            "state": self.state,
            "dashboardUrl": self.dashboard_url,
        }


class HandoffBridge:
    def __init__(
        self,
        signing_key: str,
        *,
        public_url: str,
        dashboard_path: str = DASHBOARD_PATH,
        credential_ttl_seconds: int = CREDENTIAL_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signing_key = signing_key
        self.public_url = public_url.rstrip("/")
        self.dashboard_url = join_public_url(self.public_url, dashboard_path)
        self.credential_ttl_seconds = credential_ttl_seconds
        self._clock = clock

    def mint(self, user: UserRecord, state: str) -> IssuedCredential:
        now = self._clock()
        expires_at = now + self.credential_ttl_seconds
        # Claims carry identity only; password hashes and usage stay out.
        claims = {
            "userId": user.id,
            "email": user.email,
            "name": user.name or "",
            "role": user.role,
            "state": state,
            "typ": "ext",
            "iat": now,
            "exp": expires_at,
        }
        return IssuedCredential(
            token=signed_token.encode(claims, self._signing_key),
            state=state,
            user_data=user.public_snapshot(),
            expires_at=expires_at,
        )

    def decode(self, token: str) -> dict:
        return signed_token.decode(token, self._signing_key, now=self._clock())

    def bridge_url(self, credential: IssuedCredential, client_redirect: str | None) -> str:
        return append_query_params(
            join_public_url(self.public_url, BRIDGE_PATH),
            {
                "token": credential.token,
                "user_data": json.dumps(credential.user_data, separators=(",", ":")),
                "state": credential.state,
                "client_redirect": client_redirect or "",
                "dashboard_url": self.dashboard_url,
            },
        )


def parse_bridge_params(params: Mapping[str, str]) -> BridgePayload:
    token = params.get("token")
    raw_user_data = params.get("user_data")
    state = params.get("state")
    if not token or not raw_user_data or not state:
        raise BridgeParamsError()

    try:
        user_data = json.loads(raw_user_data)
    except ValueError as error:
        raise BridgeParamsError(
            "Authentication data could not be read; please sign in again."
        ) from error
    if not isinstance(user_data, dict):
        raise BridgeParamsError(
            "Authentication data could not be read; please sign in again."
        )

    return BridgePayload(
        token=token,
        user_data=user_data,
        state=state,
        dashboard_url=params.get("dashboard_url") or None,
        client_redirect=params.get("client_redirect") or None,
    )
