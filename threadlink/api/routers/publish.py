"""Publishing endpoints for single posts and threads."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlmodel import Session

from ...core import get_session
from ...errors import InvalidPost, NeedsReauth, PublishFailed, TransientError
from ...models import LinkedAccount
from ...services import PublishingEngine, accounts
from ..deps import current_user_id, get_publishing_engine

router = APIRouter(prefix="/api/x", tags=["publish"])


class PostRequest(BaseModel):
    text: str
    reply_to: Optional[str] = None
    account_id: Optional[int] = None


class ThreadRequest(BaseModel):
    tweets: List[str]
    reply_to: Optional[str] = None
    account_id: Optional[int] = None


def _resolve_account(db: Session, app_user_id: str, account_id: Optional[int]) -> LinkedAccount:
    account = accounts.get_account(db, app_user_id, account_id)
    if account is None:
        raise HTTPException(status_code=404, detail="X account not connected")
    return account


def _needs_reauth_response() -> JSONResponse:
    return JSONResponse(
        {"error": "X authorization expired. Please connect the account again.", "needs_reauth": True},
        status_code=401,
    )


def _unavailable_response() -> JSONResponse:
    return JSONResponse({"error": "X is temporarily unavailable", "retryable": True}, status_code=503)


@router.post("/post")
async def post_single(
    body: PostRequest,
    app_user_id: str = Depends(current_user_id),
    db: Session = Depends(get_session),
    engine: PublishingEngine = Depends(get_publishing_engine),
):
    account = _resolve_account(db, app_user_id, body.account_id)
    try:
        result = await engine.publish_single(account, body.text, reply_to=body.reply_to)
    except InvalidPost as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NeedsReauth:
        return _needs_reauth_response()
    except TransientError:
        return _unavailable_response()
    except PublishFailed as exc:
        return JSONResponse({"error": exc.to_dict()}, status_code=502)
    return {"success": True, **result.to_dict()}


@router.post("/thread")
async def post_thread(
    body: ThreadRequest,
    app_user_id: str = Depends(current_user_id),
    db: Session = Depends(get_session),
    engine: PublishingEngine = Depends(get_publishing_engine),
):
    account = _resolve_account(db, app_user_id, body.account_id)
    try:
        result = await engine.publish_chain(account, body.tweets, reply_to=body.reply_to)
    except InvalidPost as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NeedsReauth:
        return _needs_reauth_response()
    except TransientError:
        return _unavailable_response()

    payload = {"success": result.completed, **result.to_dict()}
    if not result.completed:
        return JSONResponse(payload, status_code=502)
    payload["first_post_id"] = result.posted[0].id
    return payload


__all__ = ["router"]
