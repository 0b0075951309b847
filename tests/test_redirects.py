from __future__ import annotations

import httpx
import pytest

from callkit import HTTPStatusError, RedirectLimitError, TransportError, bearer, encode_json, no_follow
from callkit.redirects import MAX_REDIRECT_REQUESTS, redirect_method
from conftest import StubResponse


def redirect_once(status: int, location: str = "/redirected"):
    def handle(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/start":
            return httpx.Response(status, headers={"Location": location}, content=b"moved")
        return httpx.Response(200, content=b"PONG")

    return handle


@pytest.mark.parametrize("status", [301, 302, 303, 307, 308])
def test_redirects_are_followed(server, status: int) -> None:
    client = server.client()
    server.handler = redirect_once(status)

    with client.get("/start") as result:
        assert result.status_code == 200
        assert result.response.read() == b"PONG"

    assert [request.url.path for request in server.requests] == ["/start", "/redirected"]
    assert server.last.method == "GET"


def test_redirect_loop_stops_after_ten_requests(server) -> None:
    client = server.client()
    server.sticky = True
    server.response = StubResponse(status=302, headers={"Location": "/loop"})

    with pytest.raises(RedirectLimitError, match="stopped after 10 redirects") as excinfo:
        client.get("/loop")

    assert len(server.requests) == MAX_REDIRECT_REQUESTS == 10
    assert len(excinfo.value.chain) == 10


def test_no_follow_surfaces_the_redirect(server) -> None:
    client = server.client(no_follow)
    server.response = StubResponse(status=302, headers={"Location": "/elsewhere"}, body="redirect body")

    with pytest.raises(HTTPStatusError) as excinfo:
        client.get("/start")

    error = excinfo.value
    assert error.status_code == 302
    assert error.headers["Location"] == "/elsewhere"
    assert error.body == b"redirect body"
    assert len(server.requests) == 1


def test_redirect_without_location_is_an_error(server) -> None:
    client = server.client()
    server.response = StubResponse(status=301)

    with pytest.raises(HTTPStatusError):
        client.get("/start")
    assert len(server.requests) == 1


@pytest.mark.parametrize("status", [307, 308])
def test_body_preserving_redirects_resend_the_body(server, status: int) -> None:
    client = server.client(encode_json)
    server.handler = redirect_once(status)

    client.post("/start", body={"a": 1})

    assert len(server.requests) == 2
    redirected = server.requests[1]
    assert redirected.method == "POST"
    assert redirected.url.path == "/redirected"
    assert redirected.content == b'{"a":1}'
    assert redirected.headers["Content-Type"] == "application/json; charset=utf-8"


def test_see_other_switches_to_get_without_body(server) -> None:
    client = server.client(encode_json)
    server.handler = redirect_once(303)

    client.post("/start", body={"a": 1})

    redirected = server.requests[1]
    assert redirected.method == "GET"
    assert redirected.content == b""
    assert "Content-Type" not in redirected.headers


def test_body_is_not_restored_after_a_see_other(server) -> None:
    def handle(request: httpx.Request) -> httpx.Response:
        hops = {"/start": (303, "/second"), "/second": (307, "/third")}
        if request.url.path in hops:
            status, location = hops[request.url.path]
            return httpx.Response(status, headers={"Location": location})
        return httpx.Response(200)

    client = server.client(encode_json)
    server.handler = handle
    client.post("/start", body={"a": 1})

    assert [request.method for request in server.requests] == ["POST", "GET", "GET"]
    assert server.last.content == b""


def test_credentials_kept_on_same_origin(server) -> None:
    client = server.client(bearer("secret"))
    server.handler = redirect_once(302)

    client.get("/start")

    assert server.last.headers["Authorization"] == "Bearer secret"


def test_credentials_dropped_across_origins(server) -> None:
    client = server.client(bearer("secret"))
    server.handler = redirect_once(302, "http://elsewhere.test/landing")

    client.get("/start")

    assert server.last.url.host == "elsewhere.test"
    assert "Authorization" not in server.last.headers
    assert server.last.headers["User-Agent"].startswith("callkit-python/")


def test_unparseable_location_is_a_transport_error(server) -> None:
    client = server.client()
    server.response = StubResponse(status=302, headers={"Location": "http://stub.test:notaport/"})

    with pytest.raises(TransportError, match="Location"):
        client.get("/start")


def test_redirect_method() -> None:
    assert redirect_method(301, "POST") == "GET"
    assert redirect_method(302, "PUT") == "GET"
    assert redirect_method(303, "HEAD") == "HEAD"
    assert redirect_method(307, "POST") == "POST"
    assert redirect_method(308, "PATCH") == "PATCH"
