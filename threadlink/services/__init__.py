"""Service layer: PKCE, link sessions, authorization, tokens, publishing."""

from .authorization import AuthorizationRedirector, OAuthCookies, PendingAuthorization
from .link_sessions import LinkSessionStore
from .publishing import ChainResult, PostResult, PublishingEngine
from .token_exchange import TokenExchanger
from .tokens import Token, TokenManager

__all__ = [
    "AuthorizationRedirector",
    "ChainResult",
    "LinkSessionStore",
    "OAuthCookies",
    "PendingAuthorization",
    "PostResult",
    "PublishingEngine",
    "Token",
    "TokenExchanger",
    "TokenManager",
]
