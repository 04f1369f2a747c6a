"""X OAuth routes: direct linking, cross-device linking and the callback."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from ...core import APP_URL, FRONTEND_ORIGIN, get_session
from ...errors import (
    AuthorizationFailed,
    LinkFlowError,
    NotAuthenticated,
    SessionExpired,
    SessionNotFound,
    TransientError,
)
from ...services import AuthorizationRedirector, LinkSessionStore, OAuthCookies, TokenExchanger
from ...services.authorization import CROSS_DEVICE_LINK
from ...x_client import XApiClient
from ..deps import current_user_id, get_x_client, optional_user_id

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/auth/x", tags=["auth"])

oauth_cookies = OAuthCookies()


def _settings_url(**params: str) -> str:
    return f"{FRONTEND_ORIGIN}/settings?{urlencode(params)}"


def _link_page(page: str, error: Optional[str] = None) -> str:
    url = f"{FRONTEND_ORIGIN}/link-account/{page}"
    return f"{url}?error={error}" if error else url


def _failure_url(action: Optional[str], code: str) -> str:
    if action != CROSS_DEVICE_LINK:
        return _settings_url(error=code)
    if code == SessionExpired.code:
        return _link_page("expired")
    if code == SessionNotFound.code:
        return _link_page("invalid")
    return _link_page("error", code)


@router.get("")
def begin_direct_link(
    app_user_id: str = Depends(current_user_id),
    client: XApiClient = Depends(get_x_client),
):
    """Redirect the signed-in user to X to link an account."""

    url, pending = AuthorizationRedirector(client).begin_direct_link(app_user_id)
    response = RedirectResponse(url, status_code=302)
    oauth_cookies.write(response, pending)
    return response


@router.get("/link")
def begin_cross_device_link(
    session: Optional[str] = None,
    db: Session = Depends(get_session),
    client: XApiClient = Depends(get_x_client),
):
    """Start authorization on the device that opened a link-session URL."""

    if not session:
        return RedirectResponse(_link_page("invalid"), status_code=302)
    redirector = AuthorizationRedirector(client, LinkSessionStore(db))
    try:
        url, pending = redirector.begin_cross_device_link(session)
    except SessionExpired:
        logger.info("link_session_rejected", reason="expired")
        return RedirectResponse(_link_page("expired"), status_code=302)
    except SessionNotFound:
        logger.info("link_session_rejected", reason="not_found")
        return RedirectResponse(_link_page("invalid"), status_code=302)

    response = RedirectResponse(url, status_code=302)
    oauth_cookies.write(response, pending)
    return response


@router.get("/callback")
async def authorization_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    app_user_id: Optional[str] = Depends(optional_user_id),
    db: Session = Depends(get_session),
    client: XApiClient = Depends(get_x_client),
):
    pending = oauth_cookies.read(request)
    action = pending.action if pending else None

    if error:
        logger.info("authorization_denied", provider_error=error)
        target = _failure_url(action, "x_auth_denied")
    elif not code or not state:
        target = _failure_url(action, "missing_params")
    else:
        try:
            await TokenExchanger(db, client).complete(
                code=code, state=state, pending=pending, app_user_id=app_user_id
            )
        except LinkFlowError as exc:
            logger.info("authorization_flow_rejected", reason=exc.code)
            target = _failure_url(action, exc.code)
        except NotAuthenticated:
            target = _failure_url(action, "not_authenticated")
        except AuthorizationFailed as exc:
            target = _failure_url(action, exc.code)
        except TransientError:
            target = _failure_url(action, "x_unavailable")
        else:
            if action == CROSS_DEVICE_LINK:
                target = _link_page("success")
            else:
                target = _settings_url(success="account_linked")

    response = RedirectResponse(target, status_code=302)
    oauth_cookies.clear(response)
    return response


@router.post("/link-session")
def create_link_session(
    app_user_id: str = Depends(current_user_id),
    db: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Create a session another device can use to link an X account."""

    link = LinkSessionStore(db).create(app_user_id)
    return {
        "session_id": link.id,
        "link_url": f"{APP_URL}/link-account/{link.id}",
        "expires_at": datetime.fromtimestamp(link.expires_at, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z"),
    }


@router.get("/link-session")
def link_session_status(
    session_id: Optional[str] = Query(default=None, alias="id"),
    db: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Polled by the device that created the session."""

    if not session_id:
        raise HTTPException(status_code=400, detail="Session ID required")
    link = LinkSessionStore(db).get(session_id)
    if link is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return {"status": link.status, "linked_username": link.linked_username}


__all__ = ["router"]
