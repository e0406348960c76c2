from __future__ import annotations

import itertools
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHash, VerifyMismatchError

from . import signed_token
from .constants import SESSION_TTL_SECONDS
from .errors import InvalidCredential
from .models import UserRecord

_PASSWORD_HASHER = PasswordHasher()


def hash_password(password: str) -> str:
    return _PASSWORD_HASHER.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _PASSWORD_HASHER.verify(password_hash, password)
    except (InvalidHash, VerifyMismatchError):
        return False


class UserDirectory(ABC):
    @abstractmethod
    async def authenticate(self, email: str, password: str) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def get_user(self, user_id: int) -> UserRecord | None:
        raise NotImplementedError

    @abstractmethod
    async def create_user(self, email: str, password: str, **fields) -> UserRecord | None:
        """Store a new account, or return None when the email is already taken."""
        raise NotImplementedError


class MemoryUserDirectory(UserDirectory):
    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._ids = itertools.count(1)

    def add_user(self, email: str, password: str, **fields) -> UserRecord:
        email = email.strip().lower()
        if self._find(email) is not None:
            raise ValueError(f"User {email} already exists.")
        user = UserRecord(
            id=next(self._ids),
            email=email,
            password_hash=hash_password(password),
            **fields,
        )
        self._users[user.id] = user
        return user

    def _find(self, email: str) -> UserRecord | None:
        for user in self._users.values():
            if user.email == email:
                return user
        return None

    async def authenticate(self, email: str, password: str) -> UserRecord | None:
        user = self._find(email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            return None
        return user

    async def create_user(self, email: str, password: str, **fields) -> UserRecord | None:
        if self._find(email.strip().lower()) is not None:
            return None
        return self.add_user(email, password, **fields)

    async def get_user(self, user_id: int) -> UserRecord | None:
        return self._users.get(user_id)


class SessionManager:
    """Signed, stateless web-session cookie for the site itself."""

    def __init__(
        self,
        signing_key: str,
        *,
        ttl_seconds: int = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signing_key = signing_key
        self.ttl_seconds = ttl_seconds
        self._clock = clock

    def issue(self, user: UserRecord) -> str:
        now = self._clock()
        return signed_token.encode(
            {"sub": user.id, "typ": "s", "iat": now, "exp": now + self.ttl_seconds},
            self._signing_key,
        )

    def user_id_from_cookie(self, cookie: str | None) -> int | None:
        if not cookie:
            return None
        try:
            payload = signed_token.decode(cookie, self._signing_key, now=self._clock())
        except InvalidCredential:
            return None
        if payload.get("typ") != "s" or not isinstance(payload.get("sub"), int):
            return None
        return payload["sub"]
