"""Token lifecycle: hand out valid access tokens, refreshing when needed."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import structlog
from sqlalchemy import update
from sqlmodel import Session, select

from ..core import TOKEN_REFRESH_MARGIN, now_ts, utcnow
from ..errors import ConfigurationError, NeedsReauth, ProviderError, TransientError
from ..models import LinkedAccount, OAuthCredential
from ..x_client import XApiClient

logger = structlog.get_logger(__name__)

DEFAULT_EXPIRES_IN = 7200
REVOKED_GRANT_ERRORS = frozenset({"invalid_grant", "invalid_request"})

AccountRef = Union[LinkedAccount, str]


@dataclass(frozen=True)
class Token:
    external_account_id: str
    access_token: str = field(repr=False)
    expires_at: int


def _external_id(account: AccountRef) -> str:
    if isinstance(account, LinkedAccount):
        return account.external_account_id
    return str(account)


def _refresh_token_revoked(exc: ProviderError) -> bool:
    """True when X says the refresh token itself is unusable.

    X answers 400 ``invalid_grant`` for revoked or expired grants and 400
    ``invalid_request`` for a token value it does not recognise. Client
    authentication failures (``invalid_client``, ``unauthorized_client``, 401,
    403) say nothing about the user's grant.
    """

    return exc.status_code == 400 and exc.error in REVOKED_GRANT_ERRORS


def _expires_at(grant: Dict[str, Any]) -> int:
    if grant.get("expires_at"):
        return int(grant["expires_at"])
    return now_ts() + int(grant.get("expires_in") or DEFAULT_EXPIRES_IN)


class TokenManager:
    """Sole owner of ``OAuthCredential`` rows.

    ``get_valid_token`` either returns a ``Token`` or raises ``NeedsReauth``
    (prompt the user to authorize again, never retry) or ``TransientError``
    (nothing was changed; the caller decides whether and when to retry).
    """

    def __init__(
        self,
        session: Session,
        client: Optional[XApiClient] = None,
        margin: int = TOKEN_REFRESH_MARGIN,
    ) -> None:
        self.session = session
        self.client = client
        self.margin = margin

    def _load(self, external_account_id: str) -> Optional[OAuthCredential]:
        return self.session.exec(
            select(OAuthCredential).where(
                OAuthCredential.external_account_id == external_account_id
            )
        ).first()

    def _usable(self, credential: OAuthCredential) -> bool:
        return credential.expires_at > now_ts() + self.margin

    def store_grant(
        self, external_account_id: str, grant: Dict[str, Any], *, commit: bool = True
    ) -> OAuthCredential:
        """Upsert the credential from a fresh authorization-code grant."""

        credential = self._load(external_account_id)
        if credential is None:
            credential = OAuthCredential(
                external_account_id=external_account_id,
                access_token=grant["access_token"],
                refresh_token=grant.get("refresh_token"),
                expires_at=_expires_at(grant),
                scope=grant.get("scope"),
            )
        else:
            credential.access_token = grant["access_token"]
            credential.refresh_token = grant.get("refresh_token")
            credential.expires_at = _expires_at(grant)
            credential.scope = grant.get("scope") or credential.scope
            credential.needs_reauth = False
            credential.version += 1
            credential.updated_at = utcnow()
        self.session.add(credential)
        if commit:
            self.session.commit()
            self.session.refresh(credential)
        return credential

    def needs_reauth(self, account: AccountRef) -> bool:
        credential = self._load(_external_id(account))
        return credential is None or credential.needs_reauth

    def forget(self, account: AccountRef, *, commit: bool = True) -> None:
        credential = self._load(_external_id(account))
        if credential is not None:
            self.session.delete(credential)
            if commit:
                self.session.commit()

    async def get_valid_token(self, account: AccountRef) -> Token:
        external_id = _external_id(account)
        credential = self._load(external_id)
        if credential is None:
            raise NeedsReauth(f"No credential for account {external_id}")
        if credential.needs_reauth:
            raise NeedsReauth(f"Account {external_id} must be authorized again")

        if self._usable(credential):
            return self._token(credential)

        if not credential.refresh_token:
            winner = self._flag_needs_reauth(credential, credential.version)
            if winner is not None:
                return winner
            raise NeedsReauth(f"Account {external_id} has no refresh token")

        if self.client is None:
            raise ConfigurationError("Refreshing a token needs an X API client")

        seen_version = credential.version
        try:
            grant = await self.client.refresh_access_token(credential.refresh_token)
        except ProviderError as exc:
            if not _refresh_token_revoked(exc):
                # Client authentication or other app-side fault; the grant may still be good.
                logger.error(
                    "token_refresh_client_rejected",
                    external_account_id=external_id,
                    status_code=exc.status_code,
                    error=exc.error,
                )
                raise TransientError(
                    f"X rejected the refresh request: {exc.message}", status_code=exc.status_code
                ) from exc
            logger.warning(
                "token_refresh_rejected",
                external_account_id=external_id,
                status_code=exc.status_code,
                error=exc.error,
            )
            winner = self._flag_needs_reauth(credential, seen_version)
            if winner is not None:
                return winner
            raise NeedsReauth(f"Refresh rejected for account {external_id}") from exc
        except TransientError:
            logger.warning("token_refresh_unavailable", external_account_id=external_id)
            raise

        if not grant.get("access_token"):
            raise TransientError("Refresh response carried no access token")

        return self._swap(credential, seen_version, grant)

    def _swap(self, credential: OAuthCredential, seen_version: int, grant: Dict[str, Any]) -> Token:
        """Persist a refreshed pair only if nobody else wrote the row meanwhile."""

        expires_at = _expires_at(grant)
        result = self.session.execute(
            update(OAuthCredential)
            .where(
                OAuthCredential.id == credential.id,
                OAuthCredential.version == seen_version,
            )
            .values(
                access_token=grant["access_token"],
                refresh_token=grant.get("refresh_token") or credential.refresh_token,
                expires_at=expires_at,
                scope=grant.get("scope") or credential.scope,
                version=seen_version + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.refresh(credential)

        if result.rowcount == 1:
            logger.info(
                "token_refreshed",
                external_account_id=credential.external_account_id,
                expires_at=expires_at,
            )
            return self._token(credential)

        logger.info("token_refresh_lost_race", external_account_id=credential.external_account_id)
        if credential.needs_reauth:
            raise NeedsReauth(f"Account {credential.external_account_id} must be authorized again")
        if self._usable(credential):
            return self._token(credential)
        raise TransientError("Credential changed during refresh")

    def _flag_needs_reauth(self, credential: OAuthCredential, seen_version: int) -> Optional[Token]:
        result = self.session.execute(
            update(OAuthCredential)
            .where(
                OAuthCredential.id == credential.id,
                OAuthCredential.version == seen_version,
            )
            .values(needs_reauth=True, version=seen_version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        self.session.refresh(credential)
        if result.rowcount == 1:
            logger.info("credential_needs_reauth", external_account_id=credential.external_account_id)
            return None
        # Someone refreshed the row while our attempt was rejected.
        if not credential.needs_reauth and self._usable(credential):
            return self._token(credential)
        return None

    @staticmethod
    def _token(credential: OAuthCredential) -> Token:
        return Token(
            external_account_id=credential.external_account_id,
            access_token=credential.access_token,
            expires_at=credential.expires_at,
        )


__all__ = ["Token", "TokenManager"]
