"""Functional options applied to a :class:`ClientConfig`.

Each option is a function from one config to a new one. Options that take
arguments are factories; those that don't (``encode_json``, ``no_follow``,
...) are options themselves::

    client = callkit.new(base_url("https://api.example.com"), encode_json, decode_json)
    retrying = client.derive(retry_on_error, retry_max_attempts(5))

Invalid values raise :class:`ConfigurationError` at setup time.
"""

from __future__ import annotations

import os
from dataclasses import replace
from typing import Any, Callable, Mapping

import httpx

from .codecs import gzip_encoder, json_decoder, json_encoder
from .config import ClientConfig
from .exceptions import ConfigurationError
from .observers import Observer
from .retry import ExponentialBackoff, FixedDelay, StrategyFactory
from .security import validate_base_url

Option = Callable[[ClientConfig], ClientConfig]


def base_url(url: str) -> Option:
    try:
        parsed = validate_base_url(url)
    except ValueError as exc:
        raise ConfigurationError(str(exc), cause=exc) from exc

    def apply(config: ClientConfig) -> ClientConfig:
        return replace(config, base_url=parsed)

    return apply


def set_header(name: str, value: str) -> Option:
    def apply(config: ClientConfig) -> ClientConfig:
        return config.with_header(name, value)

    return apply


def bearer(token: str) -> Option:
    return set_header("Authorization", f"Bearer {token}")


def request_timeout(seconds: float) -> Option:
    """Set the deadline applied to every individual attempt."""
    if seconds <= 0:
        raise ConfigurationError("request timeout must be greater than 0")

    def apply(config: ClientConfig) -> ClientConfig:
        return replace(config, timeout=float(seconds))

    return apply


def encode_json(config: ClientConfig) -> ClientConfig:
    return replace(config, encoder=json_encoder)


def decode_json(config: ClientConfig) -> ClientConfig:
    return replace(config.with_header("Accept", "application/json"), decoder=json_decoder)


def dont_decode(config: ClientConfig) -> ClientConfig:
    return replace(config.without_header("Accept"), decoder=None)


def no_follow(config: ClientConfig) -> ClientConfig:
    return replace(config, follow_redirects=False)


def gzip_requests(config: ClientConfig) -> ClientConfig:
    if config.encoder is None:
        raise ConfigurationError("gzip_requests needs an encoder, apply encode_json first")
    return replace(config, encoder=gzip_encoder(config.encoder))


def observe(observer: Observer) -> Option:
    def apply(config: ClientConfig) -> ClientConfig:
        return replace(config, observer=observer)

    return apply


def http_client(client: httpx.Client) -> Option:
    """Use ``client`` as the transport; it is shared with derived clients."""

    def apply(config: ClientConfig) -> ClientConfig:
        return replace(config, http_client=client)

    return apply


def retry_on_error(config: ClientConfig) -> ClientConfig:
    return replace(config, retry=replace(config.retry, enabled=True))


def _tune_retry(option: str, **changes: Any) -> Option:
    def apply(config: ClientConfig) -> ClientConfig:
        if not config.retry.enabled:
            raise ConfigurationError(f"{option} requires retries, apply retry_on_error first")
        try:
            return replace(config, retry=replace(config.retry, **changes))
        except ValueError as exc:
            raise ConfigurationError(f"{option}: {exc}", cause=exc) from exc

    return apply


def retry_max_attempts(attempts: int) -> Option:
    return _tune_retry("retry_max_attempts", max_attempts=attempts)


def retry_max_duration(seconds: float) -> Option:
    return _tune_retry("retry_max_duration", max_duration=seconds)


def retry_speedup(factor: float) -> Option:
    """Divide every retry delay by ``factor``; meant to keep tests fast."""
    return _tune_retry("retry_speedup", speedup=factor)


def retry_strategy(factory: StrategyFactory) -> Option:
    return _tune_retry("retry_strategy", strategy_factory=factory)


def retry_backoff(initial: float, maximum: float, multiplier: float, jitter: float) -> Option:
    try:
        backoff = ExponentialBackoff(initial=initial, maximum=maximum, multiplier=multiplier, jitter=jitter)
    except ValueError as exc:
        raise ConfigurationError(f"retry_backoff: {exc}", cause=exc) from exc
    return _tune_retry("retry_backoff", backoff=backoff)


def retry_delay(seconds: float) -> Option:
    try:
        backoff = FixedDelay(seconds)
    except ValueError as exc:
        raise ConfigurationError(f"retry_delay: {exc}", cause=exc) from exc
    return _tune_retry("retry_delay", backoff=backoff)


def from_environment(prefix: str = "CALLKIT", environ: Mapping[str, str] | None = None) -> Option:
    """Read ``<prefix>_BASE_URL``, ``<prefix>_TOKEN`` and ``<prefix>_TIMEOUT``.

    Unset or empty variables are ignored; values are validated immediately.
    """
    env = os.environ if environ is None else environ
    options: list[Option] = []
    if env.get(f"{prefix}_BASE_URL"):
        options.append(base_url(env[f"{prefix}_BASE_URL"]))
    if env.get(f"{prefix}_TOKEN"):
        options.append(bearer(env[f"{prefix}_TOKEN"]))
    if env.get(f"{prefix}_TIMEOUT"):
        raw = env[f"{prefix}_TIMEOUT"]
        try:
            seconds = float(raw)
        except ValueError as exc:
            raise ConfigurationError(f"{prefix}_TIMEOUT must be a number of seconds, got {raw!r}", cause=exc) from exc
        options.append(request_timeout(seconds))

    def apply(config: ClientConfig) -> ClientConfig:
        for option in options:
            config = option(config)
        return config

    return apply
