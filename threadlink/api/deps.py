"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, Request
from sqlmodel import Session

from ..core import get_session
from ..services import PublishingEngine, TokenManager
from ..x_client import XApiClient


def get_x_client() -> XApiClient:
    """Provider client built from settings; raises ``ConfigurationError``."""

    return XApiClient.from_config()


def optional_user_id(request: Request) -> Optional[str]:
    uid = request.session.get("uid")
    return str(uid) if uid else None


def current_user_id(uid: Optional[str] = Depends(optional_user_id)) -> str:
    if not uid:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return uid


def get_publishing_engine(
    session: Session = Depends(get_session),
    client: XApiClient = Depends(get_x_client),
) -> PublishingEngine:
    return PublishingEngine(TokenManager(session, client), client)


__all__ = [
    "current_user_id",
    "get_publishing_engine",
    "get_x_client",
    "optional_user_id",
]
