"""Persistence for cross-device link sessions."""

from __future__ import annotations

import secrets
from typing import Optional

import structlog
from sqlalchemy import update
from sqlmodel import Session

from ..core import LINK_SESSION_TTL, now_ts
from ..errors import SessionAlreadyCompleted, SessionExpired, SessionNotFound
from ..models import LinkSession
from ..models.link_session import COMPLETED, EXPIRED, PENDING
from . import pkce

logger = structlog.get_logger(__name__)


class LinkSessionStore:
    """Creates, reads and completes ``LinkSession`` rows.

    Status only moves forward: pending -> completed, or pending -> expired.
    Expiry is applied lazily whenever a pending session is read past its TTL.
    """

    def __init__(self, session: Session, ttl: int = LINK_SESSION_TTL) -> None:
        self.session = session
        self.ttl = ttl

    def create(self, app_user_id: str) -> LinkSession:
        verifier = pkce.new_verifier()
        link = LinkSession(
            id=secrets.token_hex(16),
            app_user_id=app_user_id,
            code_verifier=verifier,
            code_challenge=pkce.challenge(verifier),
            status=PENDING,
            expires_at=now_ts() + self.ttl,
        )
        self.session.add(link)
        self.session.commit()
        self.session.refresh(link)
        logger.info("link_session_created", link_session_id=link.id, app_user_id=app_user_id)
        return link

    def get(self, session_id: str) -> Optional[LinkSession]:
        link = self.session.get(LinkSession, session_id)
        if link is None:
            return None
        if link.status == PENDING and link.expires_at <= now_ts():
            self._expire(link)
        return link

    def require_pending(self, session_id: str) -> LinkSession:
        """Return the session if it can still be used, else raise."""

        link = self.session.get(LinkSession, session_id)
        if link is None or link.status == COMPLETED:
            raise SessionNotFound(session_id)
        if link.status == EXPIRED:
            raise SessionExpired(session_id)
        if link.expires_at <= now_ts():
            self._expire(link)
            raise SessionExpired(session_id)
        return link

    def mark_completed(self, session_id: str, linked_username: Optional[str] = None) -> None:
        """Flip pending -> completed without committing.

        The caller commits, so completion lands in the same transaction as the
        credential it belongs to. Raises ``SessionAlreadyCompleted`` if another
        request got there first or the session lapsed in the meantime.
        """

        result = self.session.execute(
            update(LinkSession)
            .where(
                LinkSession.id == session_id,
                LinkSession.status == PENDING,
                LinkSession.expires_at > now_ts(),
            )
            .values(status=COMPLETED, linked_username=linked_username)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise SessionAlreadyCompleted(session_id)

    def _expire(self, link: LinkSession) -> None:
        self.session.execute(
            update(LinkSession)
            .where(LinkSession.id == link.id, LinkSession.status == PENDING)
            .values(status=EXPIRED)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.refresh(link)
        logger.info("link_session_expired", link_session_id=link.id)


__all__ = ["LinkSessionStore"]
