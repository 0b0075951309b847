"""Request execution on top of httpx: defaults, codecs, redirects and retries."""

from .cancellation import CancellationToken
from .client import Client, Result, new
from .codecs import RequestEncoding, gzip_encoder, json_decoder, json_encoder
from .config import ClientConfig
from .exceptions import (
    CallkitError,
    ConfigurationError,
    DecodeError,
    EncodeError,
    ErrorBodyDecodeError,
    HTTPStatusError,
    RedirectLimitError,
    RequestBuildError,
    RequestCancelledError,
    TransportError,
    TransportTimeoutError,
    as_http_error,
)
from .models import RequestInfo, ResponseInfo
from .observers import logging_observer
from .options import (
    Option,
    base_url,
    bearer,
    decode_json,
    dont_decode,
    encode_json,
    from_environment,
    gzip_requests,
    http_client,
    no_follow,
    observe,
    request_timeout,
    retry_backoff,
    retry_delay,
    retry_max_attempts,
    retry_max_duration,
    retry_on_error,
    retry_speedup,
    retry_strategy,
    set_header,
)
from .retry import (
    DefaultStrategy,
    ExponentialBackoff,
    FixedDelay,
    RetryAfterStrategy,
    RetryPolicy,
    Stop,
    Wait,
)
from .urls import int_param, param, query, query_map

__version__ = "0.1.0"

__all__ = [
    "CallkitError",
    "CancellationToken",
    "Client",
    "ClientConfig",
    "ConfigurationError",
    "DecodeError",
    "DefaultStrategy",
    "EncodeError",
    "ErrorBodyDecodeError",
    "ExponentialBackoff",
    "FixedDelay",
    "HTTPStatusError",
    "Option",
    "RedirectLimitError",
    "RequestBuildError",
    "RequestCancelledError",
    "RequestEncoding",
    "RequestInfo",
    "ResponseInfo",
    "Result",
    "RetryAfterStrategy",
    "RetryPolicy",
    "Stop",
    "TransportError",
    "TransportTimeoutError",
    "Wait",
    "as_http_error",
    "base_url",
    "bearer",
    "decode_json",
    "dont_decode",
    "encode_json",
    "from_environment",
    "gzip_encoder",
    "gzip_requests",
    "http_client",
    "int_param",
    "json_decoder",
    "json_encoder",
    "logging_observer",
    "new",
    "no_follow",
    "observe",
    "param",
    "query",
    "query_map",
    "request_timeout",
    "retry_backoff",
    "retry_delay",
    "retry_max_attempts",
    "retry_max_duration",
    "retry_on_error",
    "retry_speedup",
    "retry_strategy",
    "set_header",
]
