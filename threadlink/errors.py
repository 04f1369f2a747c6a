"""Exception types raised by the linking and publishing engine."""

from __future__ import annotations

from typing import Optional


class ThreadlinkError(Exception):
    """Base class for every domain error in this package."""


class ConfigurationError(ThreadlinkError):
    """Provider client id, secret or callback URL is missing."""


class NotAuthenticated(ThreadlinkError):
    """No application user is attached to the request."""


# Authorization flow ---------------------------------------------------------


class LinkFlowError(ThreadlinkError):
    """User-flow failure that ends on an explanatory page."""

    code = "link_failed"


class CSRFMismatch(LinkFlowError):
    code = "invalid_state"


class SessionNotFound(LinkFlowError):
    code = "invalid_session"


class SessionExpired(LinkFlowError):
    code = "session_expired"


class SessionAlreadyCompleted(LinkFlowError):
    code = "session_completed"


class AuthorizationFailed(ThreadlinkError):
    """The provider rejected the code or grant; nothing was persisted."""

    code = "callback_failed"


class AccountAlreadyLinked(AuthorizationFailed):
    code = "account_already_linked"


# Credentials ----------------------------------------------------------------


class CredentialError(ThreadlinkError):
    """A usable access token could not be produced."""


class NeedsReauth(CredentialError):
    """The stored grant is gone; the user has to authorize again."""


class TransientError(CredentialError):
    """Network failure, 429 or 5xx from the provider. Safe to retry later."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderError(ThreadlinkError):
    """Non-retryable 4xx response from the provider."""

    def __init__(self, status_code: int, message: str, error: Optional[str] = None) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.error = error


# Publishing -----------------------------------------------------------------


class InvalidPost(ThreadlinkError, ValueError):
    """Rejected locally before any network call."""


class PublishFailed(ThreadlinkError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.retryable = retryable

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "status_code": self.status_code,
            "retryable": self.retryable,
        }


__all__ = [
    "AccountAlreadyLinked",
    "AuthorizationFailed",
    "CSRFMismatch",
    "ConfigurationError",
    "CredentialError",
    "InvalidPost",
    "LinkFlowError",
    "NeedsReauth",
    "NotAuthenticated",
    "ProviderError",
    "PublishFailed",
    "SessionAlreadyCompleted",
    "SessionExpired",
    "SessionNotFound",
    "ThreadlinkError",
    "TransientError",
]
