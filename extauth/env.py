from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import AnyHttpUrl, TypeAdapter, ValidationError

from .constants import LOGGER

_PUBLIC_URL_ADAPTER = TypeAdapter(AnyHttpUrl)


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv_env(key: str) -> set[str]:
    raw = os.getenv(key, "")
    if not raw.strip():
        return set()
    return {item.strip() for item in raw.split(",") if item.strip()}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    from dotenv import load_dotenv

    load_dotenv(env_path, override=True)


def public_url_from_env() -> str:
    raw = os.getenv("EXTAUTH_PUBLIC_URL", "").strip()
    try:
        url = _PUBLIC_URL_ADAPTER.validate_python(raw)
    except ValidationError:
        raise RuntimeError(
            "EXTAUTH_PUBLIC_URL must be a valid http(s) URL (for example: "
            "https://app.example.com)."
        )
    return str(url).rstrip("/")


def validate_env() -> None:
    required = ("AUTH_SECRET", "EXTAUTH_PUBLIC_URL")
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    public_url_from_env()

    for key in (
        "EXTAUTH_STATE_TTL_SECONDS",
        "EXTAUTH_SWEEP_INTERVAL_SECONDS",
        "EXTAUTH_CREDENTIAL_TTL_SECONDS",
    ):
        if _get_env_int(key, 1) <= 0:
            raise RuntimeError(f"{key} must be a positive integer.")

    if len(os.getenv("AUTH_SECRET", "").strip()) < 32:
        LOGGER.warning("AUTH_SECRET is shorter than 32 characters; use a longer random secret.")


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("EXTAUTH_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
