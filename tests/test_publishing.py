import json

import httpx
import pytest

from threadlink.errors import InvalidPost, NeedsReauth, PublishFailed
from threadlink.services import PublishingEngine, TokenManager
from tests.fakes import posted, token_grant

TWEETS_PATH = "/2/tweets"


class SleepSpy:
    def __init__(self) -> None:
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep() -> SleepSpy:
    return SleepSpy()


@pytest.fixture
def engine_for(session, x_client, sleep):
    def _build(**kwargs) -> PublishingEngine:
        kwargs.setdefault("delay", 0.5)
        return PublishingEngine(TokenManager(session, x_client), x_client, sleep=sleep, **kwargs)

    return _build


def _payloads(fake_x):
    return [json.loads(r.content) for r in fake_x.calls("POST", TWEETS_PATH)]


@pytest.mark.asyncio
async def test_publish_single_posts_with_bearer_token(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, posted("t1", "hello"))

    result = await engine_for().publish_single(account, "hello")

    assert result.id == "t1"
    assert result.text == "hello"
    (request,) = fake_x.calls("POST", TWEETS_PATH)
    assert request.headers["authorization"] == "Bearer access-old"
    assert json.loads(request.content) == {"text": "hello"}


@pytest.mark.asyncio
async def test_publish_single_as_reply(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, posted("t2"))

    await engine_for().publish_single(account, "reply", reply_to="t1")

    assert _payloads(fake_x) == [{"text": "reply", "reply": {"in_reply_to_tweet_id": "t1"}}]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "x" * 281])
async def test_publish_single_validates_before_network(fake_x, engine_for, linked_account, text) -> None:
    account = linked_account(expires_in=-10)

    with pytest.raises(InvalidPost):
        await engine_for().publish_single(account, text)
    assert fake_x.requests == []


@pytest.mark.asyncio
async def test_publish_single_accepts_exact_limit(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, posted("t1"))

    result = await engine_for().publish_single(account, "x" * 280)
    assert result.id == "t1"


@pytest.mark.asyncio
async def test_publish_single_maps_provider_rejection(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on(
        "POST",
        TWEETS_PATH,
        httpx.Response(403, json={"title": "Forbidden", "detail": "You are not allowed to create a Tweet with duplicate content."}),
    )

    with pytest.raises(PublishFailed) as excinfo:
        await engine_for().publish_single(account, "dup")

    assert excinfo.value.status_code == 403
    assert "duplicate content" in excinfo.value.message
    assert excinfo.value.retryable is False


@pytest.mark.asyncio
async def test_publish_single_marks_outage_retryable(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, httpx.Response(503, text="over capacity"))

    with pytest.raises(PublishFailed) as excinfo:
        await engine_for().publish_single(account, "hello")
    assert excinfo.value.status_code == 503
    assert excinfo.value.retryable is True


@pytest.mark.asyncio
async def test_publish_single_refreshes_expired_token_first(fake_x, engine_for, linked_account) -> None:
    account = linked_account(expires_in=-10)
    fake_x.on("POST", "/2/oauth2/token", token_grant("access-new"))
    fake_x.on("POST", TWEETS_PATH, posted("t1"))

    await engine_for().publish_single(account, "hello")

    assert [r.url.path for r in fake_x.requests] == ["/2/oauth2/token", TWEETS_PATH]
    assert fake_x.calls("POST", TWEETS_PATH)[0].headers["authorization"] == "Bearer access-new"


@pytest.mark.asyncio
async def test_needs_reauth_propagates_without_posting(fake_x, engine_for, linked_account) -> None:
    account = linked_account(needs_reauth=True)

    with pytest.raises(NeedsReauth):
        await engine_for().publish_single(account, "hello")
    with pytest.raises(NeedsReauth):
        await engine_for().publish_chain(account, ["a", "b"])
    assert fake_x.requests == []


@pytest.mark.asyncio
async def test_empty_chain_is_rejected_without_network(fake_x, engine_for, linked_account) -> None:
    account = linked_account(expires_in=-10)

    with pytest.raises(InvalidPost):
        await engine_for().publish_chain(account, [])
    assert fake_x.requests == []


@pytest.mark.asyncio
async def test_chain_with_one_oversized_item_is_rejected_without_network(fake_x, engine_for, linked_account) -> None:
    account = linked_account(expires_in=-10)

    with pytest.raises(InvalidPost) as excinfo:
        await engine_for().publish_chain(account, ["fine", "y" * 281, "also fine"])

    assert "Post 2" in str(excinfo.value)
    assert fake_x.requests == []


@pytest.mark.asyncio
async def test_chain_longer_than_limit_is_rejected(fake_x, engine_for, linked_account) -> None:
    account = linked_account()

    with pytest.raises(InvalidPost):
        await engine_for(max_items=3).publish_chain(account, ["a", "b", "c", "d"])
    assert fake_x.requests == []


@pytest.mark.asyncio
async def test_chain_posts_in_order_replying_to_previous_id(fake_x, engine_for, sleep, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, posted("t1"), posted("t2"), posted("t3"))

    result = await engine_for(delay=0.5).publish_chain(account, ["first", "second", "third"])

    assert _payloads(fake_x) == [
        {"text": "first"},
        {"text": "second", "reply": {"in_reply_to_tweet_id": "t1"}},
        {"text": "third", "reply": {"in_reply_to_tweet_id": "t2"}},
    ]
    assert sleep.calls == [0.5, 0.5]
    assert result.completed
    assert result.stopped_at_index is None
    assert result.error is None
    assert [(p.id, p.text) for p in result.posted] == [("t1", "first"), ("t2", "second"), ("t3", "third")]
    assert result.posted_count == 3


@pytest.mark.asyncio
async def test_chain_stops_at_first_failure_and_reports_prefix(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on(
        "POST",
        TWEETS_PATH,
        posted("t1"),
        httpx.Response(429, json={"title": "Too Many Requests"}),
        posted("t3"),
    )

    result = await engine_for().publish_chain(account, ["first", "second", "third"])

    assert [p.to_dict() for p in result.posted] == [{"id": "t1", "text": "first"}]
    assert result.posted_count == 1
    assert result.stopped_at_index == 1
    assert not result.completed
    assert result.error.status_code == 429
    assert result.error.retryable is True
    assert len(fake_x.calls("POST", TWEETS_PATH)) == 2


@pytest.mark.asyncio
async def test_chain_failing_on_first_item_posts_nothing(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, httpx.ConnectError("connection refused"))

    result = await engine_for().publish_chain(account, ["first", "second"])

    assert result.posted == []
    assert result.stopped_at_index == 0
    assert result.error.status_code is None
    assert result.to_dict()["error"]["retryable"] is True


@pytest.mark.asyncio
async def test_chain_resumes_under_caller_supplied_id(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, posted("t2"), posted("t3"))

    result = await engine_for().publish_chain(account, ["second", "third"], reply_to="t1")

    assert _payloads(fake_x)[0] == {"text": "second", "reply": {"in_reply_to_tweet_id": "t1"}}
    assert result.last_posted_id == "t3"


@pytest.mark.asyncio
async def test_missing_post_id_stops_the_chain(fake_x, engine_for, linked_account) -> None:
    account = linked_account()
    fake_x.on("POST", TWEETS_PATH, posted("t1"), httpx.Response(201, json={"data": {}}))

    result = await engine_for().publish_chain(account, ["a", "b", "c"])

    assert result.stopped_at_index == 1
    assert result.posted_count == 1
