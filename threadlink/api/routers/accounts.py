"""Linked X account management."""

from __future__ import annotations

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from ...core import get_session
from ...models import LinkedAccount
from ...services import TokenManager, accounts
from ..deps import current_user_id

router = APIRouter(prefix="/api/x/accounts", tags=["accounts"])


def _account_to_dict(account: LinkedAccount, tokens: TokenManager) -> Dict[str, Any]:
    return {
        "id": account.id,
        "external_account_id": account.external_account_id,
        "username": account.username,
        "display_name": account.display_name,
        "avatar_url": account.avatar_url,
        "is_primary": account.is_primary,
        "needs_reauth": tokens.needs_reauth(account),
    }


def _owned_account(db: Session, app_user_id: str, account_id: int) -> LinkedAccount:
    account = accounts.get_account(db, app_user_id, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="Account not found")
    return account


@router.get("")
def list_linked_accounts(
    app_user_id: str = Depends(current_user_id), db: Session = Depends(get_session)
) -> Dict[str, List[Dict[str, Any]]]:
    tokens = TokenManager(db)
    return {
        "accounts": [
            _account_to_dict(account, tokens)
            for account in accounts.list_accounts(db, app_user_id)
        ]
    }


@router.post("/{account_id}/primary")
def make_primary(
    account_id: int,
    app_user_id: str = Depends(current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any]:
    account = accounts.set_primary(db, _owned_account(db, app_user_id, account_id))
    return _account_to_dict(account, TokenManager(db))


@router.delete("/{account_id}")
def unlink_account(
    account_id: int,
    app_user_id: str = Depends(current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any]:
    account = _owned_account(db, app_user_id, account_id)
    TokenManager(db).forget(account, commit=False)
    promoted = accounts.unlink(db, account)
    return {"ok": True, "primary_account_id": promoted.id if promoted else None}


__all__ = ["router"]
