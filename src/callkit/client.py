"""Client construction, derivation and the verb-level entry points."""

from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, replace
from typing import Any, BinaryIO, Callable, Iterator

import httpx

from .cancellation import CancellationToken
from .codecs import RequestEncoding, decode_response
from .config import ClientConfig
from .exceptions import (
    EncodeError,
    RequestBuildError,
    RequestCancelledError,
    coerce_http_error,
    translate_transport_error,
)
from .observers import begin_attempt
from .options import Option
from .redirects import send_with_redirects
from .retry import run_with_retries
from .urls import URLModifier, apply_modifiers, resolve_target

logger = logging.getLogger(__name__)

BODY_CHUNK_SIZE = 64 * 1024
CREDENTIAL_HEADERS = ("Authorization", "Cookie")
BODY_HEADERS = ("Content-Type", "Content-Encoding")


def _stream_body(open_body: Callable[[], BinaryIO]) -> Iterator[bytes]:
    with open_body() as stream:
        yield from iter(functools.partial(stream.read, BODY_CHUNK_SIZE), b"")


@dataclass(frozen=True)
class Result:
    """Outcome of a successful call.

    When the client has a decoder, ``data`` holds the decoded body and the
    response is already closed. Without one, the open response belongs to the
    caller, who must read or close it (``Result`` is a context manager).
    """

    response: httpx.Response
    data: Any = None

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    def close(self) -> None:
        self.response.close()

    def __enter__(self) -> "Result":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


@dataclass(frozen=True)
class _RequestTemplate:
    """Everything needed to rebuild a call's request for any attempt or hop."""

    url: httpx.URL
    method: str
    headers: httpx.Headers
    encoding: RequestEncoding | None
    timeout: float

    def build(
        self,
        *,
        method: str,
        url: httpx.URL,
        with_body: bool = True,
        with_credentials: bool = True,
    ) -> httpx.Request:
        headers = httpx.Headers(self.headers)
        if not with_credentials:
            for name in CREDENTIAL_HEADERS:
                headers.pop(name, None)
        extensions = {"timeout": httpx.Timeout(self.timeout).as_dict()}

        if with_body and self.encoding is not None:
            headers.update(self.encoding.headers)
            headers["Content-Length"] = str(self.encoding.content_length)
            return httpx.Request(
                method,
                url,
                headers=headers,
                content=_stream_body(self.encoding.open_body),
                extensions=extensions,
            )

        if not with_body:
            for name in BODY_HEADERS:
                headers.pop(name, None)
        return httpx.Request(method, url, headers=headers, extensions=extensions)

    def first(self) -> httpx.Request:
        return self.build(method=self.method, url=self.url)


class Client:
    """Synchronous client.

    Build one with :func:`new` and specialise it with :meth:`derive`. A client
    never changes after construction, so one instance can serve concurrent
    callers. Derived clients share the parent's ``httpx.Client``; closing any
    of them closes the shared transport.
    """

    def __init__(self, config: ClientConfig) -> None:
        if config.http_client is None:
            raise ValueError("ClientConfig.http_client must be set, use callkit.new()")
        self._config = config
        self._httpx = config.http_client

    @property
    def config(self) -> ClientConfig:
        return self._config

    def derive(self, *options: Option) -> "Client":
        """Return a new client from a copy of this config plus ``options``."""
        config = self._config.copy()
        for option in options:
            config = option(config)
        return Client(config)

    def __enter__(self) -> "Client":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self._httpx.close()

    def _encode(self, body: Any) -> RequestEncoding | None:
        if body is None:
            return None
        if self._config.encoder is None:
            raise EncodeError("body given but no encoder configured")
        return self._config.encoder(body)

    def _prepare(self, method: str, target: str, modifiers: tuple[URLModifier, ...], body: Any) -> _RequestTemplate:
        url = apply_modifiers(resolve_target(self._config.base_url, target), modifiers)
        if not url.is_absolute_url:
            raise RequestBuildError(f"target {target!r} does not resolve to an absolute URL, set a base_url")
        return _RequestTemplate(
            url=url,
            method=method.upper(),
            headers=self._config.headers,
            encoding=self._encode(body),
            timeout=self._config.timeout,
        )

    def _send(self, request: httpx.Request, *, attempt: int, hop: int, token: CancellationToken) -> httpx.Response:
        if token.is_cancelled():
            raise RequestCancelledError(f"call cancelled before sending {request.method} {request.url}")
        finish = begin_attempt(self._config.observer, request, attempt=attempt, hop=hop)
        try:
            response = self._httpx.send(request, stream=True, follow_redirects=False)
        except httpx.HTTPError as exc:
            error = translate_transport_error(exc, self._config.timeout)
            finish(None, error)
            raise error from exc
        except BaseException as exc:
            finish(None, exc)
            raise
        finish(response, None)
        if token.is_cancelled():
            response.close()
            raise RequestCancelledError(f"call cancelled while waiting on {request.method} {request.url}")
        return response

    def call(
        self,
        method: str,
        target: str,
        *modifiers: URLModifier,
        body: Any = None,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        """Make a request and decode the outcome.

        Args:
            method: HTTP method; any token is accepted.
            target: Absolute URL, or a reference resolved against the base URL.
            modifiers: URL modifiers applied in order (``query``, ``param``, ...).
            body: Value handed to the encoder; None sends no body.
            output: Type the decoder validates the body into (``dict``, a
                pydantic model, ...); None discards the body.
            cancel: Token that stops the call. It is checked before every
                attempt and when the transport returns, and it wakes backoff
                sleeps at once. A blocking send cannot be interrupted, so a
                cancel during one takes effect when it returns, at the latest
                after the per-attempt timeout.

        Returns:
            A :class:`Result` with the final response and decoded data.

        Raises:
            HTTPStatusError: The final response had a status of 300 or more.
                The response is available on the exception.
            RequestBuildError, EncodeError, DecodeError, TransportError,
            RedirectLimitError, RequestCancelledError: no usable response.
        """
        config = self._config
        if output is not None and config.decoder is None:
            raise RequestBuildError("output requested but no decoder configured")
        template = self._prepare(method, target, modifiers, body)
        token = cancel or CancellationToken()
        logger.debug("%s %s", template.method, template.url)

        def attempt(number: int) -> httpx.Response:
            response = send_with_redirects(
                template.first(),
                lambda request, hop: self._send(request, attempt=number, hop=hop, token=token),
                template.build,
                follow=config.follow_redirects,
            )
            error = coerce_http_error(response)
            if error is None:
                return response
            if config.decoder is not None:
                # error bodies are never decoded into output, keep them for later
                error.capture(config.decoder)
            raise error

        response = run_with_retries(config.retry, attempt, cancel=token)
        if config.decoder is None:
            return Result(response)
        return Result(response, decode_response(response, config.decoder, output))

    def get(
        self,
        target: str,
        *modifiers: URLModifier,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        return self.call("GET", target, *modifiers, output=output, cancel=cancel)

    def head(self, target: str, *modifiers: URLModifier, cancel: CancellationToken | None = None) -> Result:
        return self.call("HEAD", target, *modifiers, cancel=cancel)

    def options(
        self,
        target: str,
        *modifiers: URLModifier,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        return self.call("OPTIONS", target, *modifiers, output=output, cancel=cancel)

    def post(
        self,
        target: str,
        *modifiers: URLModifier,
        body: Any = None,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        return self.call("POST", target, *modifiers, body=body, output=output, cancel=cancel)

    def put(
        self,
        target: str,
        *modifiers: URLModifier,
        body: Any = None,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        return self.call("PUT", target, *modifiers, body=body, output=output, cancel=cancel)

    def patch(
        self,
        target: str,
        *modifiers: URLModifier,
        body: Any = None,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        return self.call("PATCH", target, *modifiers, body=body, output=output, cancel=cancel)

    def delete(
        self,
        target: str,
        *modifiers: URLModifier,
        body: Any = None,
        output: Any = None,
        cancel: CancellationToken | None = None,
    ) -> Result:
        return self.call("DELETE", target, *modifiers, body=body, output=output, cancel=cancel)


def new(*options: Option) -> Client:
    """Build a client from the defaults plus ``options``."""
    config = ClientConfig()
    for option in options:
        config = option(config)
    if config.http_client is None:
        config = replace(config, http_client=httpx.Client(follow_redirects=False, trust_env=False))
    return Client(config)
