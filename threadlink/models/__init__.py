"""Database model exports."""

from .account import LinkedAccount
from .credential import OAuthCredential
from .link_session import LinkSession

__all__ = [
    "LinkSession",
    "LinkedAccount",
    "OAuthCredential",
]
