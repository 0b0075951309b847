"""Exceptions raised by callkit clients."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx

if TYPE_CHECKING:
    from .codecs import Decoder


class CallkitError(Exception):
    """Base exception for all callkit failures."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigurationError(CallkitError):
    """Raised at setup time when an option is invalid.

    These represent a programming mistake rather than a transient condition
    and are never retried.
    """


class RequestBuildError(CallkitError):
    """Raised when a request cannot be built from the target and modifiers."""


class EncodeError(CallkitError):
    """Raised when a request body cannot be encoded."""


class DecodeError(CallkitError):
    """Raised when a response body cannot be decoded."""


class ErrorBodyDecodeError(DecodeError):
    """Raised when a captured HTTP error body cannot be decoded."""


class TransportError(CallkitError):
    """Raised for transport-level failures like DNS, TCP and protocol errors."""


class TransportTimeoutError(TransportError):
    """Raised when a single attempt exceeds its deadline."""


class RedirectLimitError(CallkitError):
    """Raised when a redirect chain never reaches a stable endpoint."""

    def __init__(self, max_requests: int, chain: list[str]) -> None:
        super().__init__(f"stopped after {max_requests} redirects: {' -> '.join(chain)}")
        self.max_requests = max_requests
        self.chain = chain


class RequestCancelledError(CallkitError):
    """Raised when the caller's cancellation token fires."""


class HTTPStatusError(CallkitError):
    """Raised for any response with a status of 300 or above.

    The response is always available. When a decoder is configured the body
    is captured into memory straight away, so ``decode`` and ``body`` never
    touch the network. Without a decoder the response is left open for the
    caller, and ``body`` reads it on first access.
    """

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"HTTP Status {response.status_code}")
        self.response = response
        self._body: bytes | None = None
        self._decoder: Decoder | None = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    def capture(self, decoder: Decoder | None) -> None:
        """Drain the response body into memory and close the stream."""
        self._decoder = decoder
        self._body = _read_error_body(self.response)

    @property
    def body(self) -> bytes:
        if self._body is None:
            self._body = _read_error_body(self.response)
        return self._body

    @property
    def text(self) -> str:
        encoding = self.response.charset_encoding or "utf-8"
        return self.body.decode(encoding, errors="replace")

    def decode(self, target: Any) -> Any:
        """Decode the captured body into ``target`` with the bound decoder."""
        if self._decoder is None:
            raise ErrorBodyDecodeError("no decoder configured for error body")
        body = self.body
        if target is None:
            return None
        if not body:
            raise ErrorBodyDecodeError("unexpected empty response")
        content_type = self.response.headers.get("content-type", "")
        try:
            return self._decoder(content_type, iter((body,)), target)
        except DecodeError as exc:
            raise ErrorBodyDecodeError(f"failed to decode error body: {exc}", cause=exc) from exc


def _read_error_body(response: httpx.Response) -> bytes:
    try:
        return response.read()
    except httpx.HTTPError as exc:
        raise TransportError(f"failed to read error body: {exc}", cause=exc) from exc
    finally:
        response.close()


def coerce_http_error(response: httpx.Response) -> HTTPStatusError | None:
    """Wrap ``response`` into an ``HTTPStatusError`` when its status is >= 300."""
    if response.status_code >= 300:
        return HTTPStatusError(response)
    return None


def as_http_error(exc: BaseException | None) -> HTTPStatusError | None:
    """Return the ``HTTPStatusError`` carried by ``exc`` or its cause chain."""
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, HTTPStatusError):
            return exc
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return None


def translate_transport_error(exc: httpx.HTTPError, timeout: float | None) -> TransportError:
    if isinstance(exc, httpx.TimeoutException):
        return TransportTimeoutError(f"request deadline exceeded after {timeout}s: {exc}", cause=exc)
    return TransportError(f"{type(exc).__name__}: {exc}", cause=exc)

