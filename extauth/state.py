from __future__ import annotations

import secrets

STATE_BYTES = 24


def issue_state() -> str:
    """Return a fresh URL-safe correlation id with 192 bits of entropy."""
    return secrets.token_urlsafe(STATE_BYTES)


def redact_state(state: str | None) -> str:
    """Prefix of a state that is safe to write to logs."""
    return state[:8] if state else "none"
