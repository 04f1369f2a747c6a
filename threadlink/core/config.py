"""Application settings and environment helpers."""

from __future__ import annotations

import os
from typing import Iterable, List

from dotenv import load_dotenv

load_dotenv(override=False)


def _require_env(name: str) -> str:
    """Return a required environment variable or raise an error."""

    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number") from exc


def _split_csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# X OAuth configuration -------------------------------------------------------
# Checked when a flow needs them, not at import, so the app can boot without.
X_CLIENT_ID = os.getenv("X_CLIENT_ID") or None
X_CLIENT_SECRET = os.getenv("X_CLIENT_SECRET") or None
X_CALLBACK_URL = os.getenv("X_CALLBACK_URL") or None

X_AUTHORIZE_URL = os.getenv("X_AUTHORIZE_URL", "https://twitter.com/i/oauth2/authorize")
X_API_BASE = os.getenv("X_API_BASE", "https://api.x.com/2").rstrip("/")
X_SCOPES = os.getenv("X_SCOPES", "tweet.read tweet.write users.read offline.access")
X_FORCE_LOGIN = _env_bool("X_FORCE_LOGIN", True)
X_HTTP_TIMEOUT = _env_float("X_HTTP_TIMEOUT", 20.0)


# Application security -------------------------------------------------------
SECRET_KEY = _require_env("SECRET_KEY")

_frontend_origins = _split_csv(_require_env("FRONTEND_ORIGIN"))
_additional_origins = _split_csv(os.getenv("ADDITIONAL_ALLOWED_ORIGINS"))

_local_dev_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

ALLOWED_CORS_ORIGINS = _unique(
    [
        *_frontend_origins,
        *_additional_origins,
        *_local_dev_origins,
    ]
)

FRONTEND_ORIGINS = _frontend_origins
FRONTEND_ORIGIN = (FRONTEND_ORIGINS[0] if FRONTEND_ORIGINS else "").rstrip("/")

COOKIE_DOMAIN = os.getenv("COOKIE_DOMAIN") or None
COOKIE_SECURE = _env_bool("COOKIE_SECURE", False)
COOKIE_SAMESITE = os.getenv("COOKIE_SAMESITE", "lax")
OAUTH_COOKIE_MAX_AGE = _env_int("OAUTH_COOKIE_MAX_AGE", 60 * 10)


# Linking and publishing -----------------------------------------------------
BACKEND_URL = os.getenv("BACKEND_URL", "")
APP_URL = (os.getenv("APP_URL") or BACKEND_URL or FRONTEND_ORIGIN).rstrip("/")

LINK_SESSION_TTL = _env_int("LINK_SESSION_TTL", 60 * 10)
TOKEN_REFRESH_MARGIN = _env_int("TOKEN_REFRESH_MARGIN", 60)

POST_MAX_CHARS = _env_int("POST_MAX_CHARS", 280)
THREAD_MAX_ITEMS = _env_int("THREAD_MAX_ITEMS", 25)
THREAD_POST_DELAY = _env_float("THREAD_POST_DELAY", 0.5)


# Runtime behaviour ----------------------------------------------------------
DATABASE_URL = os.getenv("DATABASE_URL") or None
DB_RESET = _env_bool("DB_RESET", False)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = _env_bool("LOG_JSON", True)


__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "APP_URL",
    "BACKEND_URL",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DATABASE_URL",
    "DB_RESET",
    "FRONTEND_ORIGIN",
    "FRONTEND_ORIGINS",
    "LINK_SESSION_TTL",
    "LOG_JSON",
    "LOG_LEVEL",
    "OAUTH_COOKIE_MAX_AGE",
    "POST_MAX_CHARS",
    "SECRET_KEY",
    "THREAD_MAX_ITEMS",
    "THREAD_POST_DELAY",
    "TOKEN_REFRESH_MARGIN",
    "X_API_BASE",
    "X_AUTHORIZE_URL",
    "X_CALLBACK_URL",
    "X_CLIENT_ID",
    "X_CLIENT_SECRET",
    "X_FORCE_LOGIN",
    "X_HTTP_TIMEOUT",
    "X_SCOPES",
]
