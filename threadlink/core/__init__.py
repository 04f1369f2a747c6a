"""Core configuration and infrastructure helpers."""

from .config import (
    ALLOWED_CORS_ORIGINS,
    APP_URL,
    BACKEND_URL,
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    DB_RESET,
    FRONTEND_ORIGIN,
    FRONTEND_ORIGINS,
    LINK_SESSION_TTL,
    OAUTH_COOKIE_MAX_AGE,
    POST_MAX_CHARS,
    SECRET_KEY,
    THREAD_MAX_ITEMS,
    THREAD_POST_DELAY,
    TOKEN_REFRESH_MARGIN,
)
from .database import engine, get_session
from .logging import configure_logging
from .time import now_ts, utcnow

__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "APP_URL",
    "BACKEND_URL",
    "COOKIE_DOMAIN",
    "COOKIE_SAMESITE",
    "COOKIE_SECURE",
    "DB_RESET",
    "FRONTEND_ORIGIN",
    "FRONTEND_ORIGINS",
    "LINK_SESSION_TTL",
    "OAUTH_COOKIE_MAX_AGE",
    "POST_MAX_CHARS",
    "SECRET_KEY",
    "THREAD_MAX_ITEMS",
    "THREAD_POST_DELAY",
    "TOKEN_REFRESH_MARGIN",
    "configure_logging",
    "engine",
    "get_session",
    "now_ts",
    "utcnow",
]
