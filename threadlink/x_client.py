"""
X API Client
OAuth 2.0 (authorization code with PKCE) and API communication with X.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
import structlog

from .core import config
from .errors import ConfigurationError, ProviderError, TransientError

logger = structlog.get_logger(__name__)


class XApiClient:
    """Thin async wrapper over the X token, user and tweet endpoints.

    Every network method raises ``TransientError`` for transport failures,
    429 and 5xx responses, and ``ProviderError`` for any other non-2xx status.
    Pass ``http`` to supply your own ``httpx.AsyncClient`` (tests use a
    ``MockTransport``); otherwise a client is opened per call.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: Optional[str],
        redirect_uri: str,
        *,
        http: Optional[httpx.AsyncClient] = None,
        authorize_url: str = config.X_AUTHORIZE_URL,
        api_base: str = config.X_API_BASE,
        scopes: str = config.X_SCOPES,
        timeout: float = config.X_HTTP_TIMEOUT,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.authorize_endpoint = authorize_url
        self.api_base = api_base.rstrip("/")
        self.scopes = scopes
        self.timeout = timeout
        self._http = http

    @classmethod
    def from_config(cls) -> "XApiClient":
        missing = [
            name
            for name, value in (
                ("X_CLIENT_ID", config.X_CLIENT_ID),
                ("X_CLIENT_SECRET", config.X_CLIENT_SECRET),
                ("X_CALLBACK_URL", config.X_CALLBACK_URL),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"X API not configured: missing {', '.join(missing)}")
        return cls(config.X_CLIENT_ID, config.X_CLIENT_SECRET, config.X_CALLBACK_URL)

    @property
    def token_url(self) -> str:
        return f"{self.api_base}/oauth2/token"

    def authorize_url(
        self, *, state: str, code_challenge: str, force_login: bool = config.X_FORCE_LOGIN
    ) -> str:
        """Build the X authorization URL for an S256 PKCE challenge."""

        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "scope": self.scopes,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        # Lets the user pick a different X account than the one signed in.
        if force_login:
            params["force_login"] = "true"
        return f"{self.authorize_endpoint}?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> Dict[str, Any]:
        """Exchange an authorization code for an access/refresh token pair."""

        response = await self._send(
            "POST",
            self.token_url,
            data={
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": self.redirect_uri,
                "code_verifier": code_verifier,
                "client_id": self.client_id,
            },
            auth=self._basic_auth(),
        )
        return response.json()

    async def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """Trade a refresh token for a new pair. X rotates the refresh token."""

        response = await self._send(
            "POST",
            self.token_url,
            data={
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
                "client_id": self.client_id,
            },
            auth=self._basic_auth(),
        )
        return response.json()

    async def fetch_me(self, access_token: str) -> Dict[str, Any]:
        """Return the authenticated user's profile (id, username, name, avatar)."""

        response = await self._send(
            "GET",
            f"{self.api_base}/users/me",
            params={"user.fields": "profile_image_url"},
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return response.json().get("data") or {}

    async def create_post(
        self, access_token: str, text: str, reply_to: Optional[str] = None
    ) -> Dict[str, Any]:
        """Publish one post, optionally as a reply. Returns ``{"id", "text"}``."""

        payload: Dict[str, Any] = {"text": text}
        if reply_to:
            payload["reply"] = {"in_reply_to_tweet_id": reply_to}
        response = await self._send(
            "POST",
            f"{self.api_base}/tweets",
            json=payload,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        return response.json().get("data") or {}

    def _basic_auth(self) -> Optional[httpx.BasicAuth]:
        # Public clients have no secret and authenticate with client_id alone.
        if not self.client_secret:
            return None
        return httpx.BasicAuth(self.client_id, self.client_secret)

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            if self._http is not None:
                response = await self._http.request(method, url, timeout=self.timeout, **kwargs)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("x_api_transport_error", method=method, url=url, error=type(exc).__name__)
            raise TransientError(f"X API unreachable: {type(exc).__name__}") from exc

        if response.is_success:
            return response

        body = _error_body(response)
        if response.status_code == 429 or response.status_code >= 500:
            logger.warning("x_api_transient_failure", method=method, url=url, status_code=response.status_code)
            raise TransientError(body["message"], status_code=response.status_code)

        logger.info(
            "x_api_rejected",
            method=method,
            url=url,
            status_code=response.status_code,
            error=body["error"],
        )
        raise ProviderError(response.status_code, body["message"], error=body["error"])


def _error_body(response: httpx.Response) -> Dict[str, Optional[str]]:
    """Extract a short error code and message without echoing request data."""

    try:
        data = response.json()
    except ValueError:
        return {"error": None, "message": response.text[:200] or response.reason_phrase}
    if not isinstance(data, dict):
        return {"error": None, "message": str(data)[:200]}
    error = data.get("error")
    message = (
        data.get("error_description")
        or data.get("detail")
        or data.get("title")
        or (error if isinstance(error, str) else None)
        or response.reason_phrase
    )
    return {"error": error if isinstance(error, str) else None, "message": str(message)[:200]}


__all__ = ["XApiClient"]
