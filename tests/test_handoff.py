import json

import pytest

from extauth.errors import BridgeParamsError, InvalidCredential
from extauth.handoff import BridgePayload, parse_bridge_params
from tests.handshake_helpers import PUBLIC_URL, build_bridge, build_user, query_of


def test_mint_claims_exclude_secrets(clock) -> None:
    bridge = build_bridge(clock)

    credential = bridge.mint(build_user(), "state-1")
    claims = bridge.decode(credential.token)

    assert claims["userId"] == 7
    assert claims["email"] == "ada@example.com"
    assert claims["name"] == "Ada"
    assert claims["role"] == "owner"
    assert claims["state"] == "state-1"
    assert "password_hash" not in claims
    assert "passwordHash" not in json.dumps(credential.user_data)


def test_mint_uses_long_lifetime(clock) -> None:
    bridge = build_bridge(clock)

    credential = bridge.mint(build_user(), "state-1")

    assert credential.expires_at == clock.now + 30 * 24 * 60 * 60
    clock.advance(29 * 24 * 60 * 60)
    assert bridge.decode(credential.token)["userId"] == 7
    clock.advance(2 * 24 * 60 * 60)
    with pytest.raises(InvalidCredential):
        bridge.decode(credential.token)


def test_mint_snapshots_usage_counters(clock) -> None:
    credential = build_bridge(clock).mint(build_user(), "state-1")

    assert credential.user_data == {
        "id": 7,
        "email": "ada@example.com",
        "name": "Ada",
        "role": "owner",
        "premiumRequestsUsed": 3,
        "premiumRequestsLimit": 50,
        "fastRequestsUsed": 12,
        "fastRequestsLimit": 150,
    }


def test_bridge_url_carries_handoff_fields(clock) -> None:
    bridge = build_bridge(clock)
    credential = bridge.mint(build_user(), "state-1")

    url = bridge.bridge_url(credential, "https://ext.example/done")
    query = query_of(url)

    assert url.startswith(f"{PUBLIC_URL}/extension-auth-success?")
    assert query["token"] == credential.token
    assert json.loads(query["user_data"]) == credential.user_data
    assert query["state"] == "state-1"
    assert query["client_redirect"] == "https://ext.example/done"
    assert query["dashboard_url"] == f"{PUBLIC_URL}/dashboard"


def test_parse_bridge_params_roundtrips_bridge_url(clock) -> None:
    bridge = build_bridge(clock)
    credential = bridge.mint(build_user(), "state-1")

    payload = parse_bridge_params(query_of(bridge.bridge_url(credential, None)))

    assert payload == BridgePayload(
        token=credential.token,
        user_data=credential.user_data,
        state="state-1",
        dashboard_url=f"{PUBLIC_URL}/dashboard",
        client_redirect=None,
    )


@pytest.mark.parametrize("missing", ["token", "user_data", "state"])
def test_parse_bridge_params_requires_fields(missing) -> None:
    params = {"token": "t", "user_data": "{}", "state": "s"}
    del params[missing]

    with pytest.raises(BridgeParamsError):
        parse_bridge_params(params)


def test_parse_bridge_params_rejects_bad_user_data() -> None:
    with pytest.raises(BridgeParamsError, match="could not be read"):
        parse_bridge_params({"token": "t", "user_data": "{not json", "state": "s"})


def test_event_detail_shape() -> None:
    payload = BridgePayload(token="t", user_data={"id": 1}, state="s", dashboard_url="https://d")

    assert payload.event_detail() == {
        "success": True,
        "token": "t",
        "userData": {"id": 1},
        "state": "s",
        "dashboardUrl": "https://d",
    }
