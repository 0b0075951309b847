"""Cooperative cancellation for in-flight calls.

A :class:`CancellationToken` is handed to a call by the caller. The engine
checks it before every attempt and right after the transport returns, and
backoff sleeps wait on it so a cancel wakes them immediately.

The httpx send itself is blocking and cannot be interrupted, and the engine
starts no threads to watch it. A cancel that arrives mid-send therefore takes
effect when the transport returns, bounded by the per-attempt timeout; any
response obtained by then is closed.
"""

from __future__ import annotations

import threading


class CancellationToken:
    """Thread-safe cancellation token.

    Examples:
        >>> token = CancellationToken()
        >>> # From another thread
        >>> token.cancel()
        >>> token.is_cancelled()
        True
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Signal that cancellation has been requested."""
        self._event.set()

    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep for up to ``timeout`` seconds.

        Returns:
            True if cancellation was requested before or during the wait.
        """
        if timeout <= 0:
            return self._event.is_set()
        return self._event.wait(timeout)
