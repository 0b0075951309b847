"""Immutable client configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, replace

import httpx

from .codecs import Decoder, Encoder
from .observers import Observer
from .retry import RetryPolicy

DEFAULT_TIMEOUT = 1.0
DEFAULT_USER_AGENT = "callkit-python/0.1.0"


def _default_headers() -> httpx.Headers:
    return httpx.Headers({"User-Agent": DEFAULT_USER_AGENT})


@dataclass(frozen=True)
class ClientConfig:
    """Defaults shared by every call made through a client.

    Instances are never mutated: options return modified copies, and the
    header set is copied on every write, so configs can be shared across
    threads. Only ``http_client`` is shared between a config and its copies.
    """

    base_url: httpx.URL = field(default_factory=lambda: httpx.URL(""))
    headers: httpx.Headers = field(default_factory=_default_headers)
    encoder: Encoder | None = None
    decoder: Decoder | None = None
    timeout: float = DEFAULT_TIMEOUT
    follow_redirects: bool = True
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    observer: Observer | None = None
    http_client: httpx.Client | None = None

    def copy(self) -> ClientConfig:
        return replace(self, base_url=httpx.URL(str(self.base_url)), headers=httpx.Headers(self.headers))

    def with_header(self, name: str, value: str) -> ClientConfig:
        headers = httpx.Headers(self.headers)
        headers[name] = value
        return replace(self, headers=headers)

    def without_header(self, name: str) -> ClientConfig:
        headers = httpx.Headers(self.headers)
        headers.pop(name, None)
        return replace(self, headers=headers)
