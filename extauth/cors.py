from __future__ import annotations

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

WILDCARD_ORIGIN = "*"
ALLOWED_METHODS = "GET, POST, OPTIONS"
ALLOWED_HEADERS = "Content-Type"


def _allowed_origin_header(origin: str | None, allowed_origins: set[str]) -> str | None:
    if WILDCARD_ORIGIN in allowed_origins:
        return WILDCARD_ORIGIN
    if origin and origin in allowed_origins:
        return origin
    return None


def apply_cors_response(
    request: Request,
    response: Response,
    allowed_origins: set[str],
) -> Response:
    allow_origin = _allowed_origin_header(request.headers.get("origin"), allowed_origins)
    if allow_origin is not None:
        response.headers["Access-Control-Allow-Origin"] = allow_origin
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        response.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
        if allow_origin != WILDCARD_ORIGIN:
            response.headers["Vary"] = "Origin"
    return response


def cors_preflight_response(request: Request, allowed_origins: set[str]) -> Response:
    return apply_cors_response(request, Response(status_code=204), allowed_origins)


def cors_error_response(
    request: Request,
    allowed_origins: set[str],
    code: str,
    description: str,
    status_code: int,
    *,
    extra: dict | None = None,
    headers: dict[str, str] | None = None,
) -> Response:
    body = {"error": code, "error_description": description}
    if extra:
        body.update(extra)
    return apply_cors_response(
        request,
        JSONResponse(body, status_code=status_code, headers=headers),
        allowed_origins,
    )
