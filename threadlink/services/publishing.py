"""Publishing single posts and reply-chained threads."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

import structlog

from ..core import POST_MAX_CHARS, THREAD_MAX_ITEMS, THREAD_POST_DELAY
from ..errors import InvalidPost, ProviderError, PublishFailed, TransientError
from ..x_client import XApiClient
from .tokens import AccountRef, TokenManager

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PostResult:
    id: str
    text: str

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "text": self.text}


@dataclass
class ChainResult:
    """How far a thread got.

    ``stopped_at_index`` is the zero-based index of the item that failed, or
    ``None`` when every item was posted. Items after it were never attempted.
    """

    posted: List[PostResult] = field(default_factory=list)
    stopped_at_index: Optional[int] = None
    error: Optional[PublishFailed] = None

    @property
    def posted_count(self) -> int:
        return len(self.posted)

    @property
    def completed(self) -> bool:
        return self.stopped_at_index is None

    @property
    def last_posted_id(self) -> Optional[str]:
        return self.posted[-1].id if self.posted else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "posted": [item.to_dict() for item in self.posted],
            "posted_count": self.posted_count,
            "stopped_at_index": self.stopped_at_index,
            "error": self.error.to_dict() if self.error else None,
        }


class PublishingEngine:
    def __init__(
        self,
        tokens: TokenManager,
        client: XApiClient,
        *,
        max_chars: int = POST_MAX_CHARS,
        max_items: int = THREAD_MAX_ITEMS,
        delay: float = THREAD_POST_DELAY,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.tokens = tokens
        self.client = client
        self.max_chars = max_chars
        self.max_items = max_items
        self.delay = delay
        self._sleep = sleep

    def validate_text(self, text: Any, index: Optional[int] = None) -> str:
        label = "Post" if index is None else f"Post {index + 1}"
        if not isinstance(text, str):
            raise InvalidPost(f"{label} must be a string")
        if not text.strip():
            raise InvalidPost(f"{label} is empty")
        if len(text) > self.max_chars:
            raise InvalidPost(f"{label} exceeds {self.max_chars} characters")
        return text

    def validate_chain(self, items: Sequence[Any]) -> List[str]:
        if isinstance(items, str) or not isinstance(items, Sequence):
            raise InvalidPost("Thread must be a list of posts")
        if not items:
            raise InvalidPost("Thread is empty")
        if len(items) > self.max_items:
            raise InvalidPost(f"Thread cannot exceed {self.max_items} posts")
        return [self.validate_text(text, index) for index, text in enumerate(items)]

    async def publish_single(
        self, account: AccountRef, text: str, reply_to: Optional[str] = None
    ) -> PostResult:
        """Post one item. Raises ``InvalidPost``, ``NeedsReauth``, ``TransientError``
        (token could not be obtained) or ``PublishFailed``."""

        text = self.validate_text(text)
        token = await self.tokens.get_valid_token(account)
        result = await self._post(token.access_token, text, reply_to)
        logger.info("post_published", external_account_id=token.external_account_id, post_id=result.id)
        return result

    async def publish_chain(
        self,
        account: AccountRef,
        items: Sequence[str],
        reply_to: Optional[str] = None,
    ) -> ChainResult:
        """Post ``items`` in order, each replying to the previous one.

        Pass ``reply_to`` to continue a stopped chain under its last posted id.
        A failure stops the chain; the posted prefix is kept and reported.
        """

        texts = self.validate_chain(items)
        token = await self.tokens.get_valid_token(account)

        result = ChainResult()
        previous_id = reply_to
        for index, text in enumerate(texts):
            if index > 0:
                await self._sleep(self.delay)
            try:
                posted = await self._post(token.access_token, text, previous_id)
            except PublishFailed as exc:
                result.stopped_at_index = index
                result.error = exc
                logger.warning(
                    "thread_stopped",
                    external_account_id=token.external_account_id,
                    stopped_at_index=index,
                    posted_count=result.posted_count,
                    status_code=exc.status_code,
                )
                return result
            result.posted.append(posted)
            previous_id = posted.id

        logger.info(
            "thread_published",
            external_account_id=token.external_account_id,
            posted_count=result.posted_count,
            first_post_id=result.posted[0].id,
        )
        return result

    async def _post(self, access_token: str, text: str, reply_to: Optional[str]) -> PostResult:
        try:
            data = await self.client.create_post(access_token, text, reply_to=reply_to)
        except ProviderError as exc:
            raise PublishFailed(exc.message, status_code=exc.status_code) from exc
        except TransientError as exc:
            raise PublishFailed(str(exc), status_code=exc.status_code, retryable=True) from exc
        post_id = data.get("id")
        if not post_id:
            raise PublishFailed("X did not return a post id", retryable=False)
        return PostResult(id=str(post_id), text=text)


__all__ = ["ChainResult", "PostResult", "PublishingEngine"]
