from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import time

from .errors import InvalidCredential


def derive_key(secret: str, purpose: str) -> str:
    """Derive a per-purpose signing key from the application secret."""
    return hashlib.sha256(f"extauth:{purpose}:{secret}".encode()).hexdigest()


def encode(payload: dict, key: str) -> str:
    data = json.dumps(payload, separators=(",", ":")).encode()
    data_b64 = base64.urlsafe_b64encode(data).rstrip(b"=").decode()
    sig = hmac.new(key.encode(), data, hashlib.sha256).digest()
    sig_b64 = base64.urlsafe_b64encode(sig).rstrip(b"=").decode()
    return f"{data_b64}.{sig_b64}"


def decode(token: str, key: str, *, now: float | None = None) -> dict:
    parts = token.split(".", 1)
    if len(parts) != 2:
        raise InvalidCredential("Invalid token format.")
    data_b64, sig_b64 = parts
    try:
        data = base64.urlsafe_b64decode(data_b64 + "==")
        actual_sig = base64.urlsafe_b64decode(sig_b64 + "==")
    except (binascii.Error, ValueError) as error:
        raise InvalidCredential("Invalid token encoding.") from error

    expected_sig = hmac.new(key.encode(), data, hashlib.sha256).digest()
    if not hmac.compare_digest(expected_sig, actual_sig):
        raise InvalidCredential("Token signature verification failed.")

    payload = json.loads(data)
    if not isinstance(payload, dict):
        raise InvalidCredential("Token payload must be an object.")

    current = time.time() if now is None else now
    expires_at = payload.get("exp")
    if expires_at is not None and expires_at <= current:
        raise InvalidCredential("Token has expired.")
    return payload
