"""Request body encoders and response body decoders."""

from __future__ import annotations

import functools
import gzip
import io
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, BinaryIO, Callable, Iterable, Mapping

import httpx
from pydantic import TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from .exceptions import DecodeError, EncodeError, TransportError

JSON_CONTENT_TYPE = "application/json; charset=utf-8"
GZIP_THRESHOLD = 1024
NO_CONTENT_STATUSES = frozenset({204, 304})


@dataclass(frozen=True)
class RequestEncoding:
    """An encoded request body.

    ``open_body`` may be called any number of times; every call returns a
    fresh stream over the same bytes so the body can be resent on retries and
    redirects.
    """

    content_length: int
    open_body: Callable[[], BinaryIO]
    headers: Mapping[str, str] = field(default_factory=dict)


Encoder = Callable[[Any], RequestEncoding]
Decoder = Callable[[str, Iterable[bytes], Any], Any]


def buffered_encoding(data: bytes, headers: Mapping[str, str] | None = None) -> RequestEncoding:
    return RequestEncoding(
        content_length=len(data),
        open_body=lambda: io.BytesIO(data),
        headers=dict(headers or {}),
    )


def json_encoder(value: Any) -> RequestEncoding:
    # Serialize once; every opener reads from the same buffer.
    try:
        data = json.dumps(
            to_jsonable_python(value),
            separators=(",", ":"),
            allow_nan=False,
        ).encode("utf-8")
    except (PydanticSerializationError, TypeError, ValueError) as exc:
        raise EncodeError(f"failed to encode {value!r}: {exc}", cause=exc) from exc
    return buffered_encoding(data, {"Content-Type": JSON_CONTENT_TYPE})


@functools.lru_cache(maxsize=256)
def _cached_adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _type_adapter(target: Any) -> TypeAdapter[Any]:
    try:
        return _cached_adapter(target)
    except TypeError:
        # unhashable target annotations
        return TypeAdapter(target)


def json_decoder(content_type: str, chunks: Iterable[bytes], target: Any) -> Any:
    if not content_type.lower().startswith("application/json"):
        raise DecodeError(f"expected JSON content-type, got {content_type!r}")
    data = b"".join(chunks)
    try:
        return _type_adapter(target).validate_json(data)
    except ValidationError as exc:
        raise DecodeError(f"failed to decode: {exc}", cause=exc) from exc


def gzip_encoder(encoder: Encoder, threshold: int = GZIP_THRESHOLD) -> Encoder:
    """Wrap ``encoder`` so bodies of ``threshold`` bytes or more are gzipped."""

    def encode(value: Any) -> RequestEncoding:
        encoding = encoder(value)
        # No point gzipping really small bodies
        if encoding.content_length < threshold:
            return encoding
        with encoding.open_body() as stream:
            compressed = gzip.compress(stream.read())
        headers = dict(encoding.headers)
        headers["Content-Encoding"] = "gzip"
        return buffered_encoding(compressed, headers)

    return encode


def decode_response(response: httpx.Response, decoder: Decoder, output: Any) -> Any:
    """Hand the body of a successful response to ``decoder`` and close it.

    With ``output`` of None the body is drained without decoding, so the
    connection can be reused and later reads on the response fail.
    """
    try:
        if output is None or response.status_code in NO_CONTENT_STATUSES or response.request.method == "HEAD":
            for _ in response.iter_bytes():
                pass
            return None

        chunks = response.iter_bytes()
        first = next((chunk for chunk in chunks if chunk), None)
        if first is None:
            raise DecodeError("unexpected empty response")
        content_type = response.headers.get("content-type", "")
        return decoder(content_type, itertools.chain((first,), chunks), output)
    except httpx.HTTPError as exc:
        raise TransportError(f"failed to read response body: {exc}", cause=exc) from exc
    finally:
        response.close()
