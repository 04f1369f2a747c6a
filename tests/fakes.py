"""Scripted stand-in for the X API."""

from typing import Callable, Dict, List, Tuple, Union

import httpx

from threadlink.x_client import XApiClient

API_BASE = "https://api.x.test/2"
AUTHORIZE_URL = "https://x.test/i/oauth2/authorize"
CALLBACK_URL = "http://testserver/api/auth/x/callback"

Reply = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class FakeX:
    """Scripted X API behind ``httpx.MockTransport`` that records every request.

    Queue replies per (method, path); the last reply for a route repeats.
    """

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self._routes: Dict[Tuple[str, str], List[Reply]] = {}

    def on(self, method: str, path: str, *replies: Reply) -> None:
        self._routes[(method, path)] = list(replies)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def token_calls(self) -> List[httpx.Request]:
        return self.calls("POST", "/2/oauth2/token")

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self._routes.get((request.method, request.url.path))
        if not replies:
            return httpx.Response(404, json={"title": "Not Found"})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, httpx.Response):
            return httpx.Response(reply.status_code, headers=reply.headers, content=reply.content)
        return reply(request)

    def client(self) -> XApiClient:
        return XApiClient(
            "client-id",
            "client-secret",
            CALLBACK_URL,
            http=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)),
            authorize_url=AUTHORIZE_URL,
            api_base=API_BASE,
        )


def token_grant(access: str = "access-1", refresh: str = "refresh-1", expires_in: int = 7200) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "token_type": "bearer",
            "access_token": access,
            "refresh_token": refresh,
            "expires_in": expires_in,
            "scope": "tweet.read tweet.write users.read offline.access",
        },
    )


def profile(user_id: str = "x-100", username: str = "alice") -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "data": {
                "id": user_id,
                "username": username,
                "name": username.title(),
                "profile_image_url": f"https://img.test/{username}.png",
            }
        },
    )


def posted(post_id: str, text: str = "") -> httpx.Response:
    return httpx.Response(201, json={"data": {"id": post_id, "text": text}})


