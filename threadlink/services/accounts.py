"""Linked-account bookkeeping and the one-primary-per-user invariant."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import structlog
from sqlmodel import Session, select

from ..core import utcnow
from ..errors import AccountAlreadyLinked
from ..models import LinkedAccount

logger = structlog.get_logger(__name__)


def list_accounts(session: Session, app_user_id: str) -> List[LinkedAccount]:
    return list(
        session.exec(
            select(LinkedAccount)
            .where(LinkedAccount.app_user_id == app_user_id)
            .order_by(LinkedAccount.created_at, LinkedAccount.id)
        ).all()
    )


def get_account(
    session: Session, app_user_id: str, account_id: Optional[int] = None
) -> Optional[LinkedAccount]:
    """Return the given account, or the user's primary one when no id is passed."""

    query = select(LinkedAccount).where(LinkedAccount.app_user_id == app_user_id)
    if account_id is not None:
        query = query.where(LinkedAccount.id == account_id)
    else:
        query = query.where(LinkedAccount.is_primary == True)  # noqa: E712
    return session.exec(query).first()


def upsert_linked_account(
    session: Session, app_user_id: str, profile: Dict[str, Any]
) -> LinkedAccount:
    """Attach an X profile to a user without committing.

    The first account a user links becomes primary; later ones never touch
    the existing primary flag.
    """

    external_id = str(profile["id"])
    existing = session.exec(
        select(LinkedAccount).where(LinkedAccount.external_account_id == external_id)
    ).all()
    for account in existing:
        if account.app_user_id != app_user_id:
            raise AccountAlreadyLinked(f"X account {external_id} belongs to another user")

    account = existing[0] if existing else None
    if account is None:
        has_accounts = session.exec(
            select(LinkedAccount.id).where(LinkedAccount.app_user_id == app_user_id)
        ).first() is not None
        account = LinkedAccount(
            app_user_id=app_user_id,
            external_account_id=external_id,
            username=profile.get("username") or external_id,
            display_name=profile.get("name"),
            avatar_url=profile.get("profile_image_url"),
            is_primary=not has_accounts,
        )
    else:
        account.username = profile.get("username") or account.username
        account.display_name = profile.get("name") or account.display_name
        account.avatar_url = profile.get("profile_image_url") or account.avatar_url
        account.updated_at = utcnow()
    session.add(account)
    return account


def set_primary(session: Session, account: LinkedAccount) -> LinkedAccount:
    for other in list_accounts(session, account.app_user_id):
        if other.id != account.id and other.is_primary:
            other.is_primary = False
            session.add(other)
    # Clear the old flag first so the one-primary index never sees two.
    session.flush()
    account.is_primary = True
    account.updated_at = utcnow()
    session.add(account)
    session.commit()
    session.refresh(account)
    logger.info("primary_account_changed", app_user_id=account.app_user_id, account_id=account.id)
    return account


def unlink(session: Session, account: LinkedAccount) -> Optional[LinkedAccount]:
    """Delete an account; promote the oldest remaining one if it was primary.

    Credential removal is the caller's job (see ``TokenManager.forget``) and
    must happen in the same transaction. Returns the new primary, if any.
    """

    was_primary = account.is_primary
    app_user_id = account.app_user_id
    session.delete(account)
    session.flush()

    promoted = None
    if was_primary:
        remaining = list_accounts(session, app_user_id)
        if remaining:
            promoted = remaining[0]
            promoted.is_primary = True
            session.add(promoted)
    session.commit()
    logger.info(
        "account_unlinked",
        app_user_id=app_user_id,
        promoted_account_id=promoted.id if promoted else None,
    )
    return promoted


__all__ = [
    "get_account",
    "list_accounts",
    "set_primary",
    "unlink",
    "upsert_linked_account",
]
