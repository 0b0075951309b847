"""Manual redirect following with a hop limit.

The transport never follows redirects itself; every hop goes back through
the engine so bodies can be resent from their opener and each request is
observed.

Design:
- **Explicit hops**: 301/302/303/307/308 with a ``Location`` are followed
- **Body resend**: 307/308 keep the method and reopen the original body;
  301/302/303 switch to GET (HEAD stays HEAD) and drop the body
- **Credentials**: ``Authorization`` and ``Cookie`` are dropped across origins
- **Max hops**: a chain of 10 requests that is still redirecting aborts
"""

from __future__ import annotations

import logging
from typing import Callable, Protocol

import httpx

from .exceptions import RedirectLimitError, TransportError
from .security import same_origin

logger = logging.getLogger(__name__)

MAX_REDIRECT_REQUESTS = 10
REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
BODY_PRESERVING_STATUSES = frozenset({307, 308})


class RequestFactory(Protocol):
    def __call__(
        self,
        *,
        method: str,
        url: httpx.URL,
        with_body: bool,
        with_credentials: bool,
    ) -> httpx.Request: ...


SendFn = Callable[[httpx.Request, int], httpx.Response]


def redirect_method(status_code: int, method: str) -> str:
    if status_code in BODY_PRESERVING_STATUSES or method == "HEAD":
        return method
    return "GET"


def _discard(response: httpx.Response) -> None:
    try:
        response.read()
    except httpx.HTTPError as exc:
        logger.debug("ignoring unreadable redirect body from %s: %s", response.request.url, exc)
    finally:
        response.close()


def send_with_redirects(
    first: httpx.Request,
    send: SendFn,
    build: RequestFactory,
    *,
    follow: bool = True,
) -> httpx.Response:
    """Send ``first`` and follow redirects until a non-redirect response.

    Args:
        first: The initial request of this attempt.
        send: Sends one request; receives the hop number (0 for ``first``).
        build: Rebuilds a request for the next hop from the call's template.
        follow: When False, the first response is returned whatever its status.

    Returns:
        The response of the last hop, still open.

    Raises:
        RedirectLimitError: The chain reached ``MAX_REDIRECT_REQUESTS`` requests
            and was still redirecting.
        TransportError: A ``Location`` header could not be parsed.
    """
    request = first
    chain = [str(first.url)]
    with_body = True
    with_credentials = True

    while True:
        response = send(request, len(chain) - 1)
        location = response.headers.get("Location")
        if not follow or response.status_code not in REDIRECT_STATUSES or location is None:
            return response

        if len(chain) >= MAX_REDIRECT_REQUESTS:
            _discard(response)
            raise RedirectLimitError(MAX_REDIRECT_REQUESTS, chain)

        try:
            target = request.url.join(location)
        except httpx.InvalidURL as exc:
            _discard(response)
            raise TransportError(f"failed to parse Location header {location!r}: {exc}", cause=exc) from exc

        method = redirect_method(response.status_code, request.method)
        with_body = with_body and response.status_code in BODY_PRESERVING_STATUSES
        with_credentials = with_credentials and same_origin(first.url, target)
        logger.debug("following %d redirect: %s %s -> %s %s", response.status_code, request.method, request.url, method, target)
        _discard(response)

        chain.append(str(target))
        request = build(
            method=method,
            url=target,
            with_body=with_body,
            with_credentials=with_credentials,
        )
