from __future__ import annotations

import hashlib
import hmac


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token_hash: str | None, supplied_token: str | None) -> bool:
    """Check a caller-supplied token against a stored binding hash.

    An unbound record (no hash) accepts any caller. A bound record requires a
    token whose SHA-256 digest equals the stored one; the digests are compared
    in constant time.
    """
    if token_hash is None:
        return True
    if not supplied_token:
        return False
    return hmac.compare_digest(hash_token(supplied_token), token_hash)
