"""Observer hooks invoked once per physical request.

An observer is called with a :class:`RequestInfo` when a request is sent
(every retry and every redirect hop included) and may return a completion
callback that receives a :class:`ResponseInfo`. Failures inside either call
are logged and never affect the request.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx

from .models import RequestInfo, ResponseInfo
from .security import sanitize_headers

logger = logging.getLogger(__name__)

Completion = Callable[[ResponseInfo], None]
Observer = Callable[[RequestInfo], Optional[Completion]]
AttemptDone = Callable[[Optional[httpx.Response], Optional[BaseException]], None]


def _noop(response: httpx.Response | None, error: BaseException | None) -> None:
    return None


def begin_attempt(observer: Observer | None, request: httpx.Request, *, attempt: int, hop: int) -> AttemptDone:
    """Notify ``observer`` that ``request`` is starting and return its finisher."""
    if observer is None:
        return _noop

    started = time.perf_counter()
    info = RequestInfo(
        method=request.method,
        url=str(request.url),
        headers=sanitize_headers(request.headers),
        attempt=attempt,
        hop=hop,
        started_at=datetime.now(timezone.utc),
    )
    try:
        on_complete = observer(info)
    except Exception:
        logger.warning("observer raised on request start for %s %s", info.method, info.url, exc_info=True)
        on_complete = None

    def finish(response: httpx.Response | None, error: BaseException | None) -> None:
        if on_complete is None:
            return
        result = ResponseInfo(
            status_code=response.status_code if response is not None else None,
            headers=sanitize_headers(response.headers) if response is not None else {},
            elapsed_seconds=time.perf_counter() - started,
            error=None if error is None else f"{type(error).__name__}: {error}",
        )
        try:
            on_complete(result)
        except Exception:
            logger.warning("observer raised on completion for %s %s", info.method, info.url, exc_info=True)

    return finish


def logging_observer(target: logging.Logger | None = None, level: int = logging.INFO) -> Observer:
    """Build an observer that logs one line per request and one per outcome."""
    log = target or logging.getLogger("callkit.requests")

    def observe(info: RequestInfo) -> Completion:
        log.log(level, "%s %s (attempt %d, hop %d)", info.method, info.url, info.attempt, info.hop)

        def complete(result: ResponseInfo) -> None:
            if result.error is not None:
                log.log(level, "%s %s failed after %.3fs: %s", info.method, info.url, result.elapsed_seconds, result.error)
            else:
                log.log(level, "%s %s -> %s in %.3fs", info.method, info.url, result.status_code, result.elapsed_seconds)

        return complete

    return observe
