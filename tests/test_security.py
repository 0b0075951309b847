from __future__ import annotations

import datetime as _dt
from email.utils import format_datetime

import httpx
import pytest

from callkit.security import parse_retry_after, same_origin, sanitize_headers, validate_base_url


def test_sanitize_headers_redacts_sensitive_values() -> None:
    headers = sanitize_headers(
        {
            "Authorization": "Bearer token",
            "Cookie": "session=1",
            "X-API-Key": "key",
            "Accept": "application/json",
        }
    )

    assert headers["Authorization"] == "[REDACTED]"
    assert headers["Cookie"] == "[REDACTED]"
    assert headers["X-API-Key"] == "[REDACTED]"
    assert headers["Accept"] == "application/json"


def test_validate_base_url() -> None:
    assert validate_base_url("https://api.example.com/v1/").path == "/v1/"
    with pytest.raises(ValueError, match="scheme"):
        validate_base_url("ws://api.example.com")
    with pytest.raises(ValueError, match="scheme and host"):
        validate_base_url("api.example.com")
    with pytest.raises(ValueError):
        validate_base_url("http://api.example.com\x00")


def test_same_origin() -> None:
    base = httpx.URL("http://stub.test/a")

    assert same_origin(base, httpx.URL("http://stub.test/b?c=1"))
    assert not same_origin(base, httpx.URL("https://stub.test/a"))
    assert not same_origin(base, httpx.URL("http://stub.test:8080/a"))
    assert not same_origin(base, httpx.URL("http://other.test/a"))


def test_parse_retry_after_seconds() -> None:
    assert parse_retry_after("5") == 5.0
    assert parse_retry_after("-3") == 0.0
    assert parse_retry_after(" ") is None
    assert parse_retry_after(None) is None
    assert parse_retry_after("not a date") is None


def test_parse_retry_after_http_date() -> None:
    later = _dt.datetime.now(_dt.timezone.utc) + _dt.timedelta(seconds=30)
    parsed = parse_retry_after(format_datetime(later, usegmt=True))

    assert parsed is not None
    assert 25 <= parsed <= 30
