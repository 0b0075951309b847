"""URL validation, header redaction and Retry-After helpers."""

from __future__ import annotations

import datetime as _dt
from email.utils import parsedate_to_datetime
from typing import Mapping

import httpx


SENSITIVE_HEADERS = {
    "authorization",
    "cookie",
    "proxy-authorization",
    "x-api-key",
}


def sanitize_headers(headers: Mapping[str, str] | httpx.Headers) -> dict[str, str]:
    """Copy ``headers`` with credential values replaced, for observers and logs."""
    return {key: "[REDACTED]" if key.lower() in SENSITIVE_HEADERS else value for key, value in headers.items()}


def validate_base_url(url: str) -> httpx.URL:
    """Parse and validate a base URL, raising ``ValueError`` when unusable."""
    if "\x00" in url:
        raise ValueError("Invalid base_url")
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ValueError(f"failed to parse base_url {url!r}: {exc}") from exc
    if not parsed.scheme or not parsed.host:
        raise ValueError(f"base_url must include scheme and host: {url!r}")
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"Unsupported base_url scheme: {parsed.scheme}")
    return parsed


def same_origin(a: httpx.URL, b: httpx.URL) -> bool:
    return (a.scheme, a.host, a.port) == (b.scheme, b.host, b.port)


def parse_retry_after(raw: str | None) -> float | None:
    """Convert a Retry-After value (delta-seconds or HTTP-date) into seconds.

    Returns None when the header is missing or unparseable; never negative.
    """
    value = (raw or "").strip()
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if when is None:
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=_dt.timezone.utc)
    remaining = when - _dt.datetime.now(_dt.timezone.utc)
    return max(0.0, remaining.total_seconds())
