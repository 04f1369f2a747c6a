"""Database model for cross-device link sessions."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow

PENDING = "pending"
COMPLETED = "completed"
EXPIRED = "expired"


class LinkSession(SQLModel, table=True):
    """Short-lived request to authorize an X account from another device."""

    __tablename__ = "link_sessions"

    id: str = ORMField(primary_key=True)
    app_user_id: str = ORMField(index=True)
    code_verifier: str
    code_challenge: str
    status: str = ORMField(default=PENDING, index=True)
    linked_username: Optional[str] = None
    created_at: datetime = ORMField(default_factory=utcnow)
    expires_at: int  # Unix timestamp

    def __repr__(self) -> str:
        return f"LinkSession(id={self.id!r}, status={self.status!r}, expires_at={self.expires_at!r})"


__all__ = ["COMPLETED", "EXPIRED", "LinkSession", "PENDING"]
