from __future__ import annotations

import contextlib
import os
import time
from collections.abc import Callable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from extauth import signed_token
from extauth.accounts import MemoryUserDirectory, SessionManager, UserDirectory
from extauth.constants import (
    APP_VERSION,
    CREDENTIAL_TTL_SECONDS,
    LOGGER,
    STATE_TTL_SECONDS,
    SWEEP_INTERVAL_SECONDS,
)
from extauth.coordinator import HandshakeCoordinator
from extauth.env import (
    _get_env_int,
    load_env,
    parse_csv_env,
    public_url_from_env,
    setup_logging,
    validate_env,
)
from extauth.handoff import HandoffBridge
from extauth.registry import PendingRequestRegistry
from extauth.routes import ExtensionAuthServer
from extauth.sweeper import ExpirySweeper


def build_directory_from_env() -> MemoryUserDirectory:
    directory = MemoryUserDirectory()
    demo_user = os.getenv("EXTAUTH_DEMO_USER", "").strip()
    if demo_user:
        email, sep, password = demo_user.partition(":")
        if not sep or not email or not password:
            raise RuntimeError("EXTAUTH_DEMO_USER must look like email:password.")
        directory.add_user(email, password, role="owner")
        LOGGER.info("Seeded demo user %s", email)
    return directory


async def _server_error(request: Request, exc: Exception) -> Response:
    LOGGER.exception(
        "Unhandled error on %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        {"error": "server_error", "error_description": "Internal server error."},
        status_code=500,
    )


def create_app(
    *,
    directory: UserDirectory | None = None,
    clock: Callable[[], float] = time.time,
) -> Starlette:
    load_env()
    setup_logging()
    validate_env()

    public_url = public_url_from_env()
    secret = os.getenv("AUTH_SECRET", "").strip()

    registry = PendingRequestRegistry(
        ttl_seconds=_get_env_int("EXTAUTH_STATE_TTL_SECONDS", STATE_TTL_SECONDS),
        clock=clock,
    )
    bridge = HandoffBridge(
        signed_token.derive_key(secret, "extension"),
        public_url=public_url,
        credential_ttl_seconds=_get_env_int(
            "EXTAUTH_CREDENTIAL_TTL_SECONDS",
            CREDENTIAL_TTL_SECONDS,
        ),
        clock=clock,
    )
    coordinator = HandshakeCoordinator(registry, bridge)
    sweeper = ExpirySweeper(
        registry,
        interval_seconds=_get_env_int("EXTAUTH_SWEEP_INTERVAL_SECONDS", SWEEP_INTERVAL_SECONDS),
    )
    auth_server = ExtensionAuthServer(
        coordinator=coordinator,
        directory=directory or build_directory_from_env(),
        sessions=SessionManager(signed_token.derive_key(secret, "session"), clock=clock),
        cors_origins=parse_csv_env("EXTAUTH_CORS_ORIGINS"),
        secure_cookies=public_url.startswith("https://"),
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        sweeper.start()
        LOGGER.info("Extension auth service %s started at %s", APP_VERSION, public_url)
        try:
            yield
        finally:
            await sweeper.stop()

    app = Starlette(
        routes=auth_server.routes(),
        lifespan=lifespan,
        exception_handlers={Exception: _server_error},
    )
    app.state.auth_server = auth_server
    app.state.sweeper = sweeper
    return app


def main() -> None:
    host = os.getenv("EXTAUTH_HOST", "127.0.0.1")
    port = int(os.getenv("EXTAUTH_PORT", "8000"))
    app = create_app()
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
