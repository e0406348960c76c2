from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class PendingAuthRequest:
    state: str
    extension_id: str
    created_at: float
    redirect_url: str | None = None
    token_hash: str | None = None

    def to_payload(self) -> dict:
        return {
            "extensionId": self.extension_id,
            "redirectURL": self.redirect_url,
            "valid": True,
        }


@dataclass
class UserRecord:
    id: int
    email: str
    password_hash: str = field(repr=False)
    name: str | None = None
    role: str = "member"
    premium_requests_used: int = 0
    premium_requests_limit: int = 50
    fast_requests_used: int = 0
    fast_requests_limit: int = 150

    def public_snapshot(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "premiumRequestsUsed": self.premium_requests_used,
            "premiumRequestsLimit": self.premium_requests_limit,
            "fastRequestsUsed": self.fast_requests_used,
            "fastRequestsLimit": self.fast_requests_limit,
        }


@dataclass(frozen=True)
class IssuedCredential:
    token: str
    state: str
    user_data: dict
    expires_at: float


@dataclass(frozen=True)
class InitiateResult:
    state: str
    auth_url: str


@dataclass(frozen=True)
class HandoffResult:
    redirect_url: str
    credential: IssuedCredential
    client_redirect: str | None
    dashboard_url: str
