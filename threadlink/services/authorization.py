"""Authorization redirects and the signed cookies that carry pending state."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

import structlog
from itsdangerous import BadSignature, URLSafeTimedSerializer
from starlette.requests import Request
from starlette.responses import Response

from ..core import (
    COOKIE_DOMAIN,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    OAUTH_COOKIE_MAX_AGE,
    SECRET_KEY,
)
from ..x_client import XApiClient
from . import pkce
from .link_sessions import LinkSessionStore

logger = structlog.get_logger(__name__)

DIRECT_LINK = "direct_link"
CROSS_DEVICE_LINK = "cross_device_link"

COOKIE_VERIFIER = "x_code_verifier"
COOKIE_STATE = "x_oauth_state"
COOKIE_ACTION = "x_oauth_action"
COOKIE_LINK_SESSION = "x_link_session_id"

_LINK_STATE_PREFIX = "link_"


@dataclass
class PendingAuthorization:
    """What the callback needs to finish a flow started on this browser."""

    code_verifier: Optional[str]
    state: Optional[str]
    action: str = DIRECT_LINK
    link_session_id: Optional[str] = None

    def __repr__(self) -> str:
        return f"PendingAuthorization(action={self.action!r}, link_session_id={self.link_session_id!r})"


def link_state(session_id: str) -> str:
    """State for cross-device flows: ``link_<session id>_<nonce>``."""
    return f"{_LINK_STATE_PREFIX}{session_id}_{pkce.new_state()}"


def session_id_from_state(state: Optional[str]) -> Optional[str]:
    if not state or not state.startswith(_LINK_STATE_PREFIX):
        return None
    session_id, sep, nonce = state[len(_LINK_STATE_PREFIX):].partition("_")
    if not session_id or not sep or not nonce:
        return None
    return session_id


class OAuthCookies:
    """Short-lived, signed, httponly cookies scoped to one browser."""

    def __init__(
        self,
        secret_key: str = SECRET_KEY,
        *,
        max_age: int = OAUTH_COOKIE_MAX_AGE,
        secure: bool = COOKIE_SECURE,
        samesite: str = COOKIE_SAMESITE,
        domain: Optional[str] = COOKIE_DOMAIN,
    ) -> None:
        self._serializer = URLSafeTimedSerializer(secret_key, salt="threadlink.oauth")
        self.max_age = max_age
        self.secure = secure
        self.samesite = samesite
        self.domain = domain

    def write(self, response: Response, pending: PendingAuthorization) -> None:
        values = {
            COOKIE_VERIFIER: pending.code_verifier,
            COOKIE_STATE: pending.state,
            COOKIE_ACTION: pending.action,
            COOKIE_LINK_SESSION: pending.link_session_id,
        }
        for name, value in values.items():
            if value is None:
                response.delete_cookie(name, path="/", domain=self.domain)
                continue
            response.set_cookie(
                name,
                # The cookie name is signed in so values cannot be swapped between cookies.
                self._serializer.dumps([name, value]),
                max_age=self.max_age,
                path="/",
                domain=self.domain,
                secure=self.secure,
                httponly=True,
                samesite=self.samesite,
            )

    def read(self, request: Request) -> Optional[PendingAuthorization]:
        state = self._load(request, COOKIE_STATE)
        verifier = self._load(request, COOKIE_VERIFIER)
        if state is None and verifier is None:
            return None
        return PendingAuthorization(
            code_verifier=verifier,
            state=state,
            action=self._load(request, COOKIE_ACTION) or DIRECT_LINK,
            link_session_id=self._load(request, COOKIE_LINK_SESSION),
        )

    def clear(self, response: Response) -> None:
        for name in (COOKIE_VERIFIER, COOKIE_STATE, COOKIE_ACTION, COOKIE_LINK_SESSION):
            response.delete_cookie(name, path="/", domain=self.domain)

    def _load(self, request: Request, name: str) -> Optional[str]:
        raw = request.cookies.get(name)
        if not raw:
            return None
        try:
            signed_name, value = self._serializer.loads(raw, max_age=self.max_age)
        except (BadSignature, ValueError, TypeError):
            # SignatureExpired is a BadSignature too.
            logger.info("oauth_cookie_rejected", cookie=name)
            return None
        if signed_name != name:
            return None
        return value


class AuthorizationRedirector:
    def __init__(self, client: XApiClient, link_sessions: Optional[LinkSessionStore] = None) -> None:
        self.client = client
        self.link_sessions = link_sessions

    def begin_direct_link(self, app_user_id: str) -> Tuple[str, PendingAuthorization]:
        verifier = pkce.new_verifier()
        pending = PendingAuthorization(
            code_verifier=verifier,
            state=pkce.new_state(),
            action=DIRECT_LINK,
        )
        url = self.client.authorize_url(state=pending.state, code_challenge=pkce.challenge(verifier))
        logger.info("authorization_started", action=DIRECT_LINK, app_user_id=app_user_id)
        return url, pending

    def begin_cross_device_link(self, session_id: str) -> Tuple[str, PendingAuthorization]:
        """Raises ``SessionNotFound`` or ``SessionExpired`` for unusable sessions."""

        if self.link_sessions is None:
            raise RuntimeError("cross-device linking needs a LinkSessionStore")
        link = self.link_sessions.require_pending(session_id)
        pending = PendingAuthorization(
            code_verifier=link.code_verifier,
            state=link_state(link.id),
            action=CROSS_DEVICE_LINK,
            link_session_id=link.id,
        )
        url = self.client.authorize_url(state=pending.state, code_challenge=link.code_challenge)
        logger.info("authorization_started", action=CROSS_DEVICE_LINK, link_session_id=link.id)
        return url, pending


__all__ = [
    "AuthorizationRedirector",
    "CROSS_DEVICE_LINK",
    "DIRECT_LINK",
    "OAuthCookies",
    "PendingAuthorization",
    "link_state",
    "session_id_from_state",
]
