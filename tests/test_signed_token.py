import pytest

from extauth import signed_token
from extauth.errors import InvalidCredential


def test_roundtrip_keeps_claims() -> None:
    key = signed_token.derive_key("secret", "extension")

    token = signed_token.encode({"userId": 1, "exp": 200.0}, key)

    assert signed_token.decode(token, key, now=100.0) == {"userId": 1, "exp": 200.0}


def test_derive_key_separates_purposes() -> None:
    assert signed_token.derive_key("secret", "extension") != signed_token.derive_key(
        "secret", "session"
    )


def test_decode_rejects_wrong_key() -> None:
    token = signed_token.encode({"userId": 1}, signed_token.derive_key("secret", "extension"))

    with pytest.raises(InvalidCredential, match="signature"):
        signed_token.decode(token, signed_token.derive_key("secret", "session"))


def test_decode_rejects_tampered_payload() -> None:
    key = signed_token.derive_key("secret", "extension")
    token = signed_token.encode({"role": "member"}, key)
    forged_payload = signed_token.encode({"role": "owner"}, key).split(".")[0]

    with pytest.raises(InvalidCredential):
        signed_token.decode(f"{forged_payload}.{token.split('.')[1]}", key)


def test_decode_rejects_expired_token() -> None:
    key = signed_token.derive_key("secret", "extension")
    token = signed_token.encode({"exp": 100.0}, key)

    with pytest.raises(InvalidCredential, match="expired"):
        signed_token.decode(token, key, now=100.0)


def test_decode_rejects_malformed_token() -> None:
    with pytest.raises(InvalidCredential, match="format"):
        signed_token.decode("no-dot-here", "key")
