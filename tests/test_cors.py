from tests.handshake_helpers import build_harness


def test_cors_defaults_to_any_origin() -> None:
    harness = build_harness()

    response = harness.client.post(
        "/api/extension-auth",
        json={"extensionId": "ext-1"},
        headers={"Origin": "chrome-extension://abcdef"},
    )

    assert response.headers["access-control-allow-origin"] == "*"
    assert "vary" not in response.headers


def test_cors_allows_configured_origin() -> None:
    harness = build_harness(cors_origins={"chrome-extension://abcdef"})

    response = harness.client.get(
        "/api/extension-auth",
        params={"state": "missing"},
        headers={"Origin": "chrome-extension://abcdef"},
    )

    assert response.headers["access-control-allow-origin"] == "chrome-extension://abcdef"
    assert response.headers["vary"] == "Origin"


def test_cors_blocks_unknown_origin() -> None:
    harness = build_harness(cors_origins={"chrome-extension://abcdef"})

    response = harness.client.post(
        "/api/extension-auth",
        json={"extensionId": "ext-1"},
        headers={"Origin": "https://unknown.example"},
    )

    assert "access-control-allow-origin" not in response.headers


def test_cors_preflight_options() -> None:
    harness = build_harness()

    response = harness.client.options(
        "/api/extension-auth",
        headers={
            "Origin": "chrome-extension://abcdef",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "Content-Type",
        },
    )

    assert response.status_code == 204
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"
