from tests.handshake_helpers import TTL_SECONDS, build_harness, initiate, query_of, sign_in


def test_initiate_returns_state_and_auth_url() -> None:
    harness = build_harness()

    response = harness.client.post(
        "/api/extension-auth",
        json={"extensionId": "ext-1", "redirectURL": "https://ext.example/done"},
    )

    payload = response.json()
    assert response.status_code == 200
    assert payload["success"] is True
    assert payload["state"]
    assert query_of(payload["authUrl"]) == {
        "state": payload["state"],
        "redirect_uri": "https://ext.example/done",
    }


def test_initiate_missing_extension_id() -> None:
    harness = build_harness()

    response = harness.client.post("/api/extension-auth", json={"redirectURL": "https://x"})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_parameter"
    assert len(harness.registry) == 0


def test_initiate_invalid_json() -> None:
    harness = build_harness()

    response = harness.client.post(
        "/api/extension-auth",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_initiate_rejects_non_string_fields() -> None:
    harness = build_harness()

    response = harness.client.post("/api/extension-auth", json={"extensionId": 42})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_init_returns_record() -> None:
    harness = build_harness()
    state = initiate(harness.client, redirectURL="https://ext.example/done")

    response = harness.client.get("/api/extension-auth/init", params={"state": state})

    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-store, max-age=0"
    assert response.json() == {
        "success": True,
        "extensionId": "ext-1",
        "redirectURL": "https://ext.example/done",
        "valid": True,
    }


def test_init_unknown_state() -> None:
    harness = build_harness()

    response = harness.client.get("/api/extension-auth/init", params={"state": "missing"})

    assert response.status_code == 404
    assert response.json()["valid"] is False
    assert response.json()["error"] == "not_found_or_expired"


def test_init_missing_state() -> None:
    harness = build_harness()

    response = harness.client.get("/api/extension-auth/init")

    assert response.status_code == 400
    assert response.json()["valid"] is False


def test_init_keeps_record_alive() -> None:
    harness = build_harness()
    state = initiate(harness.client)

    harness.clock.advance(TTL_SECONDS - 1)
    harness.client.get("/api/extension-auth/init", params={"state": state})
    harness.clock.advance(TTL_SECONDS - 1)

    response = harness.client.get("/api/extension-auth", params={"state": state})
    assert response.status_code == 200


def test_expired_and_unknown_states_look_the_same() -> None:
    harness = build_harness()
    state = initiate(harness.client)
    harness.clock.advance(TTL_SECONDS + 1)

    expired = harness.client.get("/api/extension-auth/init", params={"state": state})
    unknown = harness.client.get("/api/extension-auth/init", params={"state": "never-issued"})

    assert expired.status_code == unknown.status_code == 404
    assert expired.json() == unknown.json()


def test_verify_without_binding() -> None:
    harness = build_harness()
    state = initiate(harness.client)

    response = harness.client.get("/api/extension-auth", params={"state": state, "token": "x"})

    assert response.status_code == 200
    assert response.json()["valid"] is True


def test_verify_with_bound_token() -> None:
    harness = build_harness()
    state = initiate(harness.client, authToken="shared-secret")

    ok = harness.client.get(
        "/api/extension-auth",
        params={"state": state, "token": "shared-secret"},
    )
    mismatch = harness.client.get("/api/extension-auth", params={"state": state, "token": "nope"})

    assert ok.status_code == 200
    assert ok.json()["extensionId"] == "ext-1"
    assert mismatch.status_code == 401
    assert mismatch.json()["error"] == "token_mismatch"
    assert mismatch.json()["valid"] is False
    assert "extensionId" not in mismatch.json()


def test_verify_unknown_state() -> None:
    harness = build_harness()

    response = harness.client.get("/api/extension-auth", params={"state": "missing"})

    assert response.status_code == 404
    assert response.json()["valid"] is False


def test_callback_requires_session() -> None:
    harness = build_harness()
    state = initiate(harness.client)

    response = harness.client.post("/api/extension-auth/callback", json={"state": state})

    assert response.status_code == 401
    assert response.json()["error"] == "not_authenticated"


def test_callback_requires_state() -> None:
    harness = build_harness()

    response = harness.client.post("/api/extension-auth/callback", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "missing_parameter"


def test_callback_returns_token_for_signed_in_user() -> None:
    harness = build_harness()
    sign_in(harness.client)
    state = initiate(harness.client)

    response = harness.client.post("/api/extension-auth/callback", json={"state": state})

    payload = response.json()
    assert response.status_code == 200
    assert payload["success"] is True
    assert payload["user"]["email"] == "ada@example.com"
    assert harness.bridge.decode(payload["token"])["userId"] == harness.user.id


def test_callback_unknown_state() -> None:
    harness = build_harness()
    sign_in(harness.client)

    response = harness.client.post("/api/extension-auth/callback", json={"state": "missing"})

    assert response.status_code == 404
