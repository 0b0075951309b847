"""Target resolution and URL modifiers applied per call."""

from __future__ import annotations

from typing import Any, Callable, Mapping, Sequence
from urllib.parse import quote, urlencode

import httpx

from .exceptions import RequestBuildError

URLModifier = Callable[[httpx.URL], httpx.URL]


def resolve_target(base: httpx.URL, target: str) -> httpx.URL:
    """Resolve ``target`` against ``base`` using relative-reference rules."""
    try:
        return base.join(target)
    except httpx.InvalidURL as exc:
        raise RequestBuildError(f"failed to parse target {target!r}: {exc}", cause=exc) from exc


def apply_modifiers(url: httpx.URL, modifiers: Sequence[URLModifier]) -> httpx.URL:
    for modifier in modifiers:
        url = modifier(url)
    return url


def _coerce_query_values(values: Mapping[str, Any]) -> list[tuple[str, str]]:
    pairs: list[tuple[str, str]] = []
    for key, value in values.items():
        if isinstance(value, (list, tuple)):
            pairs.extend((str(key), str(item)) for item in value)
            continue
        pairs.append((str(key), str(value)))
    return pairs


def _with_query(url: httpx.URL, pairs: list[tuple[str, str]], source: str) -> httpx.URL:
    if url.query:
        raise RequestBuildError(f"refusing to overwrite querystring with {source}")
    return url.copy_with(query=urlencode(pairs).encode("ascii"))


def query(values: Mapping[str, Any]) -> URLModifier:
    """Set the querystring from a mapping of names to a value or a sequence of values."""
    pairs = _coerce_query_values(values)

    def modify(url: httpx.URL) -> httpx.URL:
        return _with_query(url, pairs, "query values")

    return modify


def query_map(values: Mapping[str, str]) -> URLModifier:
    """Set the querystring from a mapping of names to single values."""
    pairs = [(str(key), str(value)) for key, value in values.items()]

    def modify(url: httpx.URL) -> httpx.URL:
        return _with_query(url, pairs, "query map")

    return modify


def _replace_path_token(url: httpx.URL, name: str, value: str) -> httpx.URL:
    raw = url.raw_path.decode("ascii")
    path, sep, querystring = raw.partition("?")
    token = ":" + name
    if token not in path:
        raise RequestBuildError(f"failed to find parameter {name!r} in path {path!r}")
    path = path.replace(token, quote(value, safe=""), 1)
    return url.copy_with(raw_path=(path + sep + querystring).encode("ascii"))


def param(name: str, value: str) -> URLModifier:
    """Replace ``:name`` in the path with the percent-escaped ``value``."""

    def modify(url: httpx.URL) -> httpx.URL:
        return _replace_path_token(url, name, value)

    return modify


def int_param(name: str, value: int) -> URLModifier:
    """Replace ``:name`` in the path with an integer."""

    def modify(url: httpx.URL) -> httpx.URL:
        return _replace_path_token(url, name, str(int(value)))

    return modify
