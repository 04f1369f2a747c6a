"""Database model for X OAuth credentials."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class OAuthCredential(SQLModel, table=True):
    """Access/refresh token pair for one linked account.

    Only ``services.tokens`` reads or writes rows of this table. ``version``
    is bumped on every write so concurrent refreshes can compare-and-swap.
    """

    __tablename__ = "oauth_credentials"

    id: Optional[int] = ORMField(default=None, primary_key=True)
    external_account_id: str = ORMField(index=True, unique=True)
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: int  # Unix timestamp
    scope: Optional[str] = None
    needs_reauth: bool = ORMField(default=False)
    version: int = ORMField(default=1)
    updated_at: datetime = ORMField(default_factory=utcnow)

    def __repr__(self) -> str:
        return (
            f"OAuthCredential(id={self.id!r}, external_account_id={self.external_account_id!r}, "
            f"expires_at={self.expires_at!r}, needs_reauth={self.needs_reauth!r})"
        )


__all__ = ["OAuthCredential"]
