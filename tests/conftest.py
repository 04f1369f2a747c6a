import os
import sys
from pathlib import Path
from typing import Callable, Union

os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FRONTEND_ORIGIN"] = "http://frontend.test"
os.environ["APP_URL"] = "http://app.test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["THREAD_POST_DELAY"] = "0"
os.environ["LOG_JSON"] = "false"
for _name in ("X_CLIENT_ID", "X_CLIENT_SECRET", "X_CALLBACK_URL"):
    os.environ.pop(_name, None)

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from threadlink import models  # noqa: E402,F401
from threadlink.core import now_ts  # noqa: E402
from threadlink.models import LinkedAccount, OAuthCredential  # noqa: E402
from threadlink.x_client import XApiClient  # noqa: E402
from tests.fakes import FakeX  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def fake_x() -> FakeX:
    return FakeX()


@pytest.fixture
def x_client(fake_x) -> XApiClient:
    return fake_x.client()


@pytest.fixture
def linked_account(session) -> Callable[..., LinkedAccount]:
    """Insert an account plus credential; ``expires_in`` may be negative."""

    def _create(
        app_user_id: str = "user-1",
        external_account_id: str = "x-100",
        username: str = "alice",
        expires_in: int = 3600,
        refresh_token: Union[str, None] = "refresh-old",
        is_primary: bool = True,
        needs_reauth: bool = False,
    ) -> LinkedAccount:
        account = LinkedAccount(
            app_user_id=app_user_id,
            external_account_id=external_account_id,
            username=username,
            is_primary=is_primary,
        )
        credential = OAuthCredential(
            external_account_id=external_account_id,
            access_token="access-old",
            refresh_token=refresh_token,
            expires_at=now_ts() + expires_in,
            needs_reauth=needs_reauth,
        )
        session.add(account)
        session.add(credential)
        session.commit()
        session.refresh(account)
        return account

    return _create
