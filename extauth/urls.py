from __future__ import annotations

import urllib.parse

from .constants import EXTENSION_AUTH_PATH


def append_query_params(url: str, params: dict[str, str]) -> str:
    parsed = urllib.parse.urlparse(url)
    existing = urllib.parse.parse_qs(parsed.query, keep_blank_values=True)
    for key, value in params.items():
        existing[key] = [value]

    new_query = urllib.parse.urlencode(existing, doseq=True)
    return urllib.parse.urlunparse(parsed._replace(query=new_query))


def build_auth_url(state: str, redirect_url: str | None) -> str:
    """Relative login-surface URL handed back to the extension on initiate."""
    return append_query_params(
        EXTENSION_AUTH_PATH,
        {"state": state, "redirect_uri": redirect_url or ""},
    )


def join_public_url(public_url: str, path: str) -> str:
    return f"{public_url.rstrip('/')}/{path.lstrip('/')}"
