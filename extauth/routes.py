from __future__ import annotations

import dataclasses
from collections.abc import Callable

from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.routing import Route
from starlette.templating import Jinja2Templates

from .accounts import SessionManager, UserDirectory
from .constants import (
    APP_VERSION,
    AUTH_COMPLETE_EVENT,
    AUTH_RESULT_GLOBAL,
    BRIDGE_NAVIGATION_DELAY_MS,
    BRIDGE_PATH,
    DASHBOARD_PATH,
    EXTENSION_AUTH_PATH,
    LOGGER,
    SESSION_COOKIE_NAME,
    SIGN_IN_PATH,
    SIGN_UP_PATH,
    TEMPLATES_DIR,
)
from .coordinator import HandshakeCoordinator
from .cors import (
    WILDCARD_ORIGIN,
    apply_cors_response,
    cors_error_response,
    cors_preflight_response,
)
from .errors import (
    BridgeParamsError,
    HandshakeError,
    InvalidCredential,
    MissingParameter,
    UpstreamFailure,
)
from .handoff import parse_bridge_params
from .models import UserRecord
from .state import redact_state
from .urls import append_query_params

NO_STORE_HEADERS = {"Cache-Control": "no-store, max-age=0"}

INITIATE_PATH = "/api/extension-auth"
INIT_PATH = "/api/extension-auth/init"
CALLBACK_PATH = "/api/extension-auth/callback"

MIN_PASSWORD_LENGTH = 8


class ExtensionAuthServer:
    def __init__(
        self,
        *,
        coordinator: HandshakeCoordinator,
        directory: UserDirectory,
        sessions: SessionManager,
        cors_origins: set[str] | None = None,
        secure_cookies: bool = True,
        navigation_delay_ms: int = BRIDGE_NAVIGATION_DELAY_MS,
        templates: Jinja2Templates | None = None,
    ) -> None:
        self.coordinator = coordinator
        self.directory = directory
        self.sessions = sessions
        self.cors_origins = set(cors_origins) if cors_origins else {WILDCARD_ORIGIN}
        self.secure_cookies = secure_cookies
        self.navigation_delay_ms = navigation_delay_ms
        self.templates = templates or Jinja2Templates(directory=str(TEMPLATES_DIR))

    def routes(self) -> list[Route]:
        return [
            Route(INITIATE_PATH, self._handle_initiate, methods=["POST"]),
            Route(INITIATE_PATH, self._handle_verify, methods=["GET"]),
            Route(INIT_PATH, self._handle_init, methods=["GET"]),
            Route(CALLBACK_PATH, self._handle_callback, methods=["POST"]),
            Route(INITIATE_PATH, self._handle_preflight, methods=["OPTIONS"]),
            Route(INIT_PATH, self._handle_preflight, methods=["OPTIONS"]),
            Route(CALLBACK_PATH, self._handle_preflight, methods=["OPTIONS"]),
            Route(EXTENSION_AUTH_PATH, self._handle_extension_auth_page, methods=["GET"]),
            Route(SIGN_IN_PATH, self._handle_sign_in_page, methods=["GET"]),
            Route(SIGN_IN_PATH, self._handle_sign_in, methods=["POST"]),
            Route(SIGN_UP_PATH, self._handle_sign_up_page, methods=["GET"]),
            Route(SIGN_UP_PATH, self._handle_sign_up, methods=["POST"]),
            Route(BRIDGE_PATH, self._handle_bridge_page, methods=["GET"]),
            Route(DASHBOARD_PATH, self._handle_dashboard, methods=["GET"]),
            Route("/health", self._handle_health, methods=["GET"]),
        ]

    # -- extension-facing JSON endpoints --------------------------------------

    async def _handle_preflight(self, request: Request) -> Response:
        return cors_preflight_response(request, self.cors_origins)

    async def _handle_initiate(self, request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return self._error(request, "invalid_request", "Invalid JSON body.", 400)
        if not isinstance(payload, dict):
            return self._error(request, "invalid_request", "JSON body must be an object.", 400)

        extension_id = payload.get("extensionId")
        redirect_url = payload.get("redirectURL")
        auth_token = payload.get("authToken")
        values = (extension_id, redirect_url, auth_token)
        if any(value is not None and not isinstance(value, str) for value in values):
            return self._error(request, "invalid_request", "Parameters must be strings.", 400)

        LOGGER.info(
            "Extension auth request extension_id=%s redirect_url=%s",
            extension_id,
            redirect_url or "none",
        )
        try:
            result = await self.coordinator.initiate(extension_id, redirect_url, auth_token)
        except HandshakeError as error:
            LOGGER.warning("Rejected extension auth request: %s", error.description)
            return self._handshake_error(request, error)

        return apply_cors_response(
            request,
            JSONResponse({"success": True, "authUrl": result.auth_url, "state": result.state}),
            self.cors_origins,
        )

    async def _handle_verify(self, request: Request) -> Response:
        state = request.query_params.get("state")
        token = request.query_params.get("token")
        try:
            record = await self.coordinator.verify(state, token)
        except HandshakeError as error:
            LOGGER.warning(
                "Handshake verify failed state=%s code=%s",
                redact_state(state),
                error.code,
            )
            return self._handshake_error(request, error, valid=False)

        return apply_cors_response(
            request,
            JSONResponse({"success": True, **record.to_payload()}, headers=NO_STORE_HEADERS),
            self.cors_origins,
        )

    async def _handle_init(self, request: Request) -> Response:
        state = request.query_params.get("state")
        try:
            record = await self.coordinator.poll(state)
        except HandshakeError as error:
            LOGGER.warning(
                "Handshake init failed state=%s code=%s",
                redact_state(state),
                error.code,
            )
            return self._handshake_error(request, error, valid=False)

        return apply_cors_response(
            request,
            JSONResponse({"success": True, **record.to_payload()}, headers=NO_STORE_HEADERS),
            self.cors_origins,
        )

    async def _handle_callback(self, request: Request) -> Response:
        try:
            payload = await request.json()
        except ValueError:
            return self._error(request, "invalid_request", "Invalid JSON body.", 400)
        state = payload.get("state") if isinstance(payload, dict) else None
        if not isinstance(state, str) or not state:
            return self._handshake_error(request, MissingParameter("state is required."))

        user = await self._session_user(request)
        if user is None:
            return self._error(request, "not_authenticated", "User not authenticated.", 401)

        try:
            handoff = await self.coordinator.bind(state, user)
        except HandshakeError as error:
            return self._handshake_error(request, error)

        return apply_cors_response(
            request,
            JSONResponse(
                {
                    "success": True,
                    "token": handoff.credential.token,
                    "user": handoff.credential.user_data,
                },
                headers=NO_STORE_HEADERS,
            ),
            self.cors_origins,
        )

    # -- human-facing pages ----------------------------------------------------

    async def _handle_extension_auth_page(self, request: Request) -> Response:
        state = request.query_params.get("state")
        redirect_uri = request.query_params.get("redirect_uri") or None
        if not state:
            return self.templates.TemplateResponse(
                request,
                "extension_auth_error.html",
                {
                    "message": "Missing authentication parameters; "
                    "redirecting to the regular sign-in page.",
                    "sign_in_url": SIGN_IN_PATH,
                },
                status_code=400,
            )

        try:
            await self.coordinator.poll(state)
        except HandshakeError as error:
            return self.templates.TemplateResponse(
                request,
                "extension_auth_error.html",
                {
                    "message": "This sign-in link is invalid or has expired. "
                    "Start the sign-in again from the extension.",
                    "sign_in_url": None,
                },
                status_code=error.status_code,
            )

        return self._sign_in_form(request, extension_state=state, extension_redirect=redirect_uri)

    async def _handle_sign_in_page(self, request: Request) -> Response:
        return self._sign_in_form(request)

    async def _handle_sign_in(self, request: Request) -> Response:
        form = await request.form()
        email = str(form.get("email") or "").strip()
        password = str(form.get("password") or "")
        extension_state = str(form.get("extensionAuthState") or "") or None
        extension_redirect = str(form.get("extensionRedirectUri") or "") or None

        def _form_error(message: str, status_code: int) -> Response:
            return self._sign_in_form(
                request,
                extension_state=extension_state,
                extension_redirect=extension_redirect,
                email=email,
                error=message,
                status_code=status_code,
            )

        if not email or not password:
            return _form_error("Email and password are required.", 400)

        try:
            user = await self.directory.authenticate(email, password)
        except Exception:
            LOGGER.exception("User directory failed during sign-in")
            error = UpstreamFailure("Sign-in is temporarily unavailable. Please try again.")
            return _form_error(error.description, error.status_code)

        if user is None:
            return _form_error("Invalid email or password. Please try again.", 401)

        LOGGER.info(
            "Sign-in succeeded user_id=%s extension_state=%s",
            user.id,
            redact_state(extension_state),
        )
        return await self._finish_login(user, extension_state, extension_redirect, _form_error)

    async def _handle_sign_up_page(self, request: Request) -> Response:
        return self._sign_in_form(
            request,
            sign_up=True,
            extension_state=request.query_params.get("state") or None,
        )

    async def _handle_sign_up(self, request: Request) -> Response:
        form = await request.form()
        name = str(form.get("name") or "").strip() or None
        email = str(form.get("email") or "").strip()
        password = str(form.get("password") or "")
        extension_state = str(form.get("extensionAuthState") or "") or None

        def _form_error(message: str, status_code: int) -> Response:
            return self._sign_in_form(
                request,
                sign_up=True,
                extension_state=extension_state,
                email=email,
                name=name,
                error=message,
                status_code=status_code,
            )

        if not email or not password:
            return _form_error("Email and password are required.", 400)
        if len(password) < MIN_PASSWORD_LENGTH:
            return _form_error(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
                400,
            )

        try:
            user = await self.directory.create_user(email, password, name=name)
        except Exception:
            LOGGER.exception("User directory failed during sign-up")
            error = UpstreamFailure("Sign-up is temporarily unavailable. Please try again.")
            return _form_error(error.description, error.status_code)

        if user is None:
            return _form_error("Failed to create user. Please try again.", 400)

        LOGGER.info(
            "Sign-up succeeded user_id=%s extension_state=%s",
            user.id,
            redact_state(extension_state),
        )
        # A new account always hands off to the redirect stored at initiate.
        return await self._finish_login(user, extension_state, None, _form_error)

    async def _finish_login(
        self,
        user: UserRecord,
        extension_state: str | None,
        extension_redirect: str | None,
        form_error: Callable[[str, int], Response],
    ) -> Response:
        if extension_state:
            try:
                handoff = await self.coordinator.bind(
                    extension_state,
                    user,
                    redirect_override=extension_redirect,
                )
            except HandshakeError as error:
                LOGGER.warning(
                    "Extension hand-off failed state=%s code=%s",
                    redact_state(extension_state),
                    error.code,
                )
                response = form_error(
                    "Extension sign-in failed; restart it from the extension. "
                    f"({error.description})",
                    error.status_code,
                )
            else:
                response = RedirectResponse(handoff.redirect_url, status_code=303)
        else:
            response = RedirectResponse(DASHBOARD_PATH, status_code=303)

        self._set_session_cookie(response, user)
        return response

    async def _handle_bridge_page(self, request: Request) -> Response:
        try:
            payload = parse_bridge_params(request.query_params)
        except BridgeParamsError as error:
            LOGGER.warning("Bridging page loaded with invalid parameters: %s", error.description)
            return self.templates.TemplateResponse(
                request,
                "extension_auth_success.html",
                {"error": error.description, "retry_url": EXTENSION_AUTH_PATH},
                status_code=error.status_code,
            )

        try:
            claims = self.coordinator.bridge.decode(payload.token)
            if claims.get("state") != payload.state:
                raise InvalidCredential("Token was issued for a different handshake.")
        except InvalidCredential as error:
            LOGGER.warning(
                "Bridging page loaded with a rejected token state=%s",
                redact_state(payload.state),
            )
            return self.templates.TemplateResponse(
                request,
                "extension_auth_success.html",
                {
                    "error": "This sign-in result is invalid or has expired; please sign in again.",
                    "retry_url": EXTENSION_AUTH_PATH,
                },
                status_code=error.status_code,
                headers=NO_STORE_HEADERS,
            )

        dashboard_url = self.coordinator.bridge.dashboard_url
        if payload.dashboard_url != dashboard_url:
            payload = dataclasses.replace(payload, dashboard_url=dashboard_url)

        return self.templates.TemplateResponse(
            request,
            "extension_auth_success.html",
            {
                "error": None,
                "detail": payload.event_detail(),
                "global_name": AUTH_RESULT_GLOBAL,
                "event_name": AUTH_COMPLETE_EVENT,
                "delay_ms": self.navigation_delay_ms,
                "dashboard_url": dashboard_url,
            },
            headers=NO_STORE_HEADERS,
        )

    async def _handle_dashboard(self, request: Request) -> Response:
        user = await self._session_user(request)
        if user is None:
            return RedirectResponse(SIGN_IN_PATH, status_code=303)
        return self.templates.TemplateResponse(request, "dashboard.html", {"user": user})

    async def _handle_health(self, request: Request) -> Response:
        del request
        return JSONResponse(
            {
                "status": "ok",
                "version": APP_VERSION,
                "active_handshakes": len(self.coordinator.registry),
            }
        )

    # -- helpers ---------------------------------------------------------------

    def _sign_in_form(
        self,
        request: Request,
        *,
        extension_state: str | None = None,
        extension_redirect: str | None = None,
        email: str = "",
        name: str | None = None,
        error: str | None = None,
        sign_up: bool = False,
        status_code: int = 200,
    ) -> Response:
        if sign_up:
            switch_url = (
                append_query_params(EXTENSION_AUTH_PATH, {"state": extension_state})
                if extension_state
                else SIGN_IN_PATH
            )
        elif extension_state:
            switch_url = append_query_params(SIGN_UP_PATH, {"state": extension_state})
        else:
            switch_url = SIGN_UP_PATH
        return self.templates.TemplateResponse(
            request,
            "sign_in.html",
            {
                "action": SIGN_UP_PATH if sign_up else SIGN_IN_PATH,
                "sign_up": sign_up,
                "switch_url": switch_url,
                "extension_state": extension_state,
                "extension_redirect": extension_redirect,
                "email": email,
                "name": name,
                "error": error,
            },
            status_code=status_code,
        )

    async def _session_user(self, request: Request) -> UserRecord | None:
        user_id = self.sessions.user_id_from_cookie(request.cookies.get(SESSION_COOKIE_NAME))
        if user_id is None:
            return None
        return await self.directory.get_user(user_id)

    def _set_session_cookie(self, response: Response, user: UserRecord) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            self.sessions.issue(user),
            max_age=self.sessions.ttl_seconds,
            httponly=True,
            secure=self.secure_cookies,
            samesite="lax",
        )

    def _handshake_error(
        self,
        request: Request,
        error: HandshakeError,
        *,
        valid: bool | None = None,
    ) -> Response:
        return self._error(
            request,
            error.code,
            error.description,
            error.status_code,
            valid=valid,
        )

    def _error(
        self,
        request: Request,
        code: str,
        description: str,
        status_code: int,
        *,
        valid: bool | None = None,
    ) -> Response:
        return cors_error_response(
            request=request,
            allowed_origins=self.cors_origins,
            code=code,
            description=description,
            status_code=status_code,
            extra=None if valid is None else {"valid": valid},
            headers=NO_STORE_HEADERS,
        )
