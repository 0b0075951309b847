from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable

import httpx
import pytest

import callkit
from callkit import base_url, http_client

BASE = "http://stub.test"
JSON_HEADERS = {"content-type": "application/json; charset=utf-8"}


@dataclass
class StubResponse:
    status: int = 200
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b"PONG"
    # stream the body so reads after close fail the way a real socket does
    streamed: bool = False

    def build(self) -> httpx.Response:
        content = self.body.encode() if isinstance(self.body, str) else self.body
        if self.streamed:
            return httpx.Response(self.status, headers=self.headers, content=iter([content]))
        return httpx.Response(self.status, headers=self.headers, content=content)


class RecordingServer:
    """Stub server that records every request it receives."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.times: list[float] = []
        self.response = StubResponse()
        self.handler: Callable[[httpx.Request], httpx.Response] | None = None
        self.sticky = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.times.append(time.monotonic())
        if self.handler is not None:
            return self.handler(request)
        response = self.response.build()
        if not self.sticky:
            self.response = StubResponse()
        return response

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def gaps(self) -> list[float]:
        return [later - earlier for earlier, later in zip(self.times, self.times[1:])]

    def client(self, *options: callkit.Option) -> callkit.Client:
        transport = httpx.MockTransport(self)
        return callkit.new(
            http_client(httpx.Client(transport=transport, follow_redirects=False)),
            base_url(BASE),
            *options,
        )


@pytest.fixture
def server() -> RecordingServer:
    return RecordingServer()
