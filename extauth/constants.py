from __future__ import annotations

import logging
from pathlib import Path

LOGGER = logging.getLogger("extauth")
APP_VERSION = "0.1.0"

STATE_TTL_SECONDS = 60 * 60
SWEEP_INTERVAL_SECONDS = 10 * 60
CREDENTIAL_TTL_SECONDS = 30 * 24 * 60 * 60
BRIDGE_NAVIGATION_DELAY_MS = 1000

SESSION_COOKIE_NAME = "session"
SESSION_TTL_SECONDS = 24 * 60 * 60

# Channel the bridging page publishes on: a window global plus a DOM event.
AUTH_RESULT_GLOBAL = "authResult"
AUTH_COMPLETE_EVENT = "extension-auth-complete"

EXTENSION_AUTH_PATH = "/extension-auth"
BRIDGE_PATH = "/extension-auth-success"
DASHBOARD_PATH = "/dashboard"
SIGN_IN_PATH = "/sign-in"
SIGN_UP_PATH = "/sign-up"

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"
