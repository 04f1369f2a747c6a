"""Database model for linked X accounts."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Index, UniqueConstraint, text
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class LinkedAccount(SQLModel, table=True):
    """An external X account bound to one application user."""

    __tablename__ = "linked_accounts"
    __table_args__ = (
        UniqueConstraint("app_user_id", "external_account_id", name="uq_linked_account_user_external"),
        # At most one primary account per user.
        Index(
            "uq_linked_account_primary",
            "app_user_id",
            unique=True,
            sqlite_where=text("is_primary"),
            postgresql_where=text("is_primary"),
        ),
    )

    id: Optional[int] = ORMField(default=None, primary_key=True)
    app_user_id: str = ORMField(index=True)
    external_account_id: str = ORMField(index=True)
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    is_primary: bool = ORMField(default=False)
    created_at: datetime = ORMField(default_factory=utcnow)
    updated_at: datetime = ORMField(default_factory=utcnow)


__all__ = ["LinkedAccount"]
