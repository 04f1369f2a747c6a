"""Authorization callback: verify state, exchange the code, persist the link."""

from __future__ import annotations

import hmac
from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from ..errors import (
    AuthorizationFailed,
    CSRFMismatch,
    NotAuthenticated,
    ProviderError,
)
from ..models import LinkedAccount
from ..x_client import XApiClient
from .accounts import upsert_linked_account
from .authorization import CROSS_DEVICE_LINK, PendingAuthorization, session_id_from_state
from .link_sessions import LinkSessionStore
from .tokens import TokenManager

logger = structlog.get_logger(__name__)


class TokenExchanger:
    def __init__(self, session: Session, client: XApiClient) -> None:
        self.session = session
        self.client = client
        self.link_sessions = LinkSessionStore(session)
        self.tokens = TokenManager(session, client)

    async def complete(
        self,
        *,
        code: str,
        state: str,
        pending: Optional[PendingAuthorization],
        app_user_id: Optional[str] = None,
    ) -> LinkedAccount:
        """Finish an authorization flow.

        State is checked before anything else; on mismatch the token endpoint
        is never called. All writes (account, credential, link session) are
        committed together or not at all.
        """

        if pending is None or not pending.state or not hmac.compare_digest(state.encode(), pending.state.encode()):
            raise CSRFMismatch("state does not match the value stored for this browser")
        if not pending.code_verifier:
            raise AuthorizationFailed("missing code verifier")

        link_session_id = None
        if pending.action == CROSS_DEVICE_LINK:
            link_session_id = session_id_from_state(state)
            if link_session_id is None or (
                pending.link_session_id and pending.link_session_id != link_session_id
            ):
                raise CSRFMismatch("state does not carry the expected link session")
            owner = self.link_sessions.require_pending(link_session_id).app_user_id
        else:
            if not app_user_id:
                raise NotAuthenticated("direct linking needs a signed-in user")
            owner = app_user_id

        try:
            grant = await self.client.exchange_code(code, pending.code_verifier)
            if not grant.get("access_token"):
                raise AuthorizationFailed("token response carried no access token")
            profile = await self.client.fetch_me(grant["access_token"])
        except ProviderError as exc:
            logger.info("authorization_rejected", status_code=exc.status_code, error=exc.error)
            raise AuthorizationFailed(exc.message) from exc
        if not profile.get("id"):
            raise AuthorizationFailed("profile response carried no account id")

        try:
            account = upsert_linked_account(self.session, owner, profile)
            self.tokens.store_grant(account.external_account_id, grant, commit=False)
            if link_session_id is not None:
                self.link_sessions.mark_completed(link_session_id, account.username)
            self.session.commit()
        except IntegrityError as exc:
            # Lost a race on a unique key: account, credential or primary flag.
            self.session.rollback()
            logger.info("account_link_conflict", app_user_id=owner, external_account_id=str(profile["id"]))
            raise AuthorizationFailed("account was linked by a concurrent request") from exc
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(account)

        logger.info(
            "account_linked",
            action=pending.action,
            app_user_id=owner,
            account_id=account.id,
            username=account.username,
            is_primary=account.is_primary,
        )
        return account


__all__ = ["TokenExchanger"]
