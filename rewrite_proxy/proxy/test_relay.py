"""Tests for turning the upstream response into the client response."""

import gzip
from unittest.mock import patch

import httpx
import pytest
from fastapi.responses import StreamingResponse

from rewrite_proxy.proxy.relay import relay_response
from rewrite_proxy.proxy.settings import ProxySettings


async def _open(client, url="https://www.reddit.com/r/test"):
    return await client.send(client.build_request("GET", url), stream=True)


async def _body(response):
    if isinstance(response, StreamingResponse):
        chunks = [chunk async for chunk in response.body_iterator]
        return b"".join(chunks)
    return response.body


class TestHtmlResponses:
    @pytest.mark.asyncio
    async def test_html_is_rewritten(self, make_request, proxy_settings, upstream_client):
        html = '<html><body><a href="https://www.reddit.com/r/test">banana</a></body></html>'
        client = upstream_client(
            lambda request: httpx.Response(
                200, headers={"content-type": "text/html"}, text=html
            )
        )
        upstream = await _open(client)

        response = await relay_response(
            upstream, make_request(scheme="http", host="proxy.local"), proxy_settings
        )

        body = (await _body(response)).decode("utf-8")
        assert '<a href="http://proxy.local/r/test">banana™</a>' in body
        assert response.headers["content-type"] == "text/html; charset=utf-8"
        assert response.headers["content-length"] == str(len(body.encode("utf-8")))
        assert upstream.is_closed

    @pytest.mark.asyncio
    async def test_proxy_host_keeps_port(self, make_request, proxy_settings, upstream_client):
        client = upstream_client(
            lambda request: httpx.Response(
                200,
                headers={"content-type": "text/html; charset=iso-8859-1"},
                text='<img src="//www.reddit.com/img.png">',
            )
        )
        upstream = await _open(client)

        response = await relay_response(
            upstream, make_request(scheme="https", host="localhost:8080"), proxy_settings
        )

        assert b'src="//localhost:8080/img.png"' in await _body(response)
        assert response.headers["content-type"] == "text/html; charset=utf-8"

    @pytest.mark.asyncio
    async def test_plus_html_subtype_is_rewritten(
        self, make_request, proxy_settings, upstream_client
    ):
        client = upstream_client(
            lambda request: httpx.Response(
                200,
                headers={"content-type": "application/vnd.page+html"},
                text="<p>orange</p>",
            )
        )
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert await _body(response) == "<p>orange™</p>".encode("utf-8")
        assert response.headers["content-type"] == (
            "application/vnd.page+html; charset=utf-8"
        )

    @pytest.mark.asyncio
    async def test_compressed_html_is_decoded(
        self, make_request, proxy_settings, upstream_client
    ):
        client = upstream_client(
            lambda request: httpx.Response(
                200,
                headers={
                    "content-type": "text/html",
                    "content-encoding": "gzip",
                    "content-length": "9999",
                },
                content=gzip.compress(b"<p>banana</p>"),
            )
        )
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert await _body(response) == "<p>banana™</p>".encode("utf-8")
        assert "content-encoding" not in response.headers
        assert response.headers["content-length"] != "9999"


class TestStreamedResponses:
    @pytest.mark.asyncio
    async def test_json_bytes_unchanged_and_not_parsed(
        self, make_request, proxy_settings, upstream_client
    ):
        payload = b'{"url": "https://www.reddit.com/r/test", "word": "banana"}'
        client = upstream_client(
            lambda request: httpx.Response(
                200, headers={"content-type": "application/json"}, content=payload
            )
        )
        upstream = await _open(client)

        with patch("rewrite_proxy.proxy.relay.rewrite_html") as rewrite:
            response = await relay_response(upstream, make_request(), proxy_settings)
            body = await _body(response)

        rewrite.assert_not_called()
        assert isinstance(response, StreamingResponse)
        assert body == payload
        assert response.headers["content-type"] == "application/json"
        assert response.headers["content-length"] == str(len(payload))

    @pytest.mark.asyncio
    async def test_compressed_binary_relayed_raw(
        self, make_request, proxy_settings, upstream_client
    ):
        compressed = gzip.compress(b"binary" * 100)
        client = upstream_client(
            lambda request: httpx.Response(
                200,
                headers={
                    "content-type": "application/octet-stream",
                    "content-encoding": "gzip",
                },
                content=compressed,
            )
        )
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert await _body(response) == compressed
        assert response.headers["content-encoding"] == "gzip"

    @pytest.mark.asyncio
    async def test_missing_content_type_is_streamed(
        self, make_request, proxy_settings, upstream_client
    ):
        client = upstream_client(lambda request: httpx.Response(204))
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert isinstance(response, StreamingResponse)
        assert response.status_code == 204
        assert await _body(response) == b""

    @pytest.mark.asyncio
    async def test_stream_failure_ends_body_quietly(
        self, make_request, proxy_settings, upstream_client
    ):
        class BrokenStream(httpx.AsyncByteStream):
            async def __aiter__(self):
                yield b"partial"
                raise httpx.ReadError("connection reset")

        client = upstream_client(
            lambda request: httpx.Response(
                200, headers={"content-type": "video/mp4"}, stream=BrokenStream()
            )
        )
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert await _body(response) == b"partial"

    @pytest.mark.asyncio
    async def test_already_read_body_is_relayed(
        self, make_request, proxy_settings, upstream_client
    ):
        client = upstream_client(
            lambda request: httpx.Response(
                404,
                headers={"content-type": "application/json", "content-encoding": "gzip"},
                content=gzip.compress(b'{"error": "not found"}'),
            )
        )
        upstream = await _open(client)
        await upstream.aread()

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert response.status_code == 404
        assert await _body(response) == b'{"error": "not found"}'
        assert "content-encoding" not in response.headers
        assert response.headers["content-type"] == "application/json"


class TestResponseHeaders:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_type", ["text/html", "text/css"])
    async def test_excluded_headers_dropped_any_case(
        self, make_request, upstream_client, content_type
    ):
        settings = ProxySettings(
            excluded_response_headers=["SERVER", "x-powered-BY", "Keep-Alive"]
        )
        client = upstream_client(
            lambda request: httpx.Response(
                200,
                headers=[
                    ("content-type", content_type),
                    ("Server", "snooserv"),
                    ("X-Powered-By", "reddit"),
                    ("keep-alive", "timeout=5"),
                    ("Cache-Control", "private"),
                ],
                content=b"<p>x</p>",
            )
        )
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), settings)

        assert "server" not in response.headers
        assert "x-powered-by" not in response.headers
        assert "keep-alive" not in response.headers
        assert response.headers["cache-control"] == "private"

    @pytest.mark.asyncio
    async def test_status_and_repeated_headers_copied(
        self, make_request, proxy_settings, upstream_client
    ):
        client = upstream_client(
            lambda request: httpx.Response(
                302,
                headers=[
                    ("Location", "https://www.reddit.com/login"),
                    ("Set-Cookie", "a=1; Path=/"),
                    ("Set-Cookie", "b=2; Path=/"),
                ],
            )
        )
        upstream = await _open(client)

        response = await relay_response(upstream, make_request(), proxy_settings)

        assert response.status_code == 302
        assert response.headers.getlist("set-cookie") == ["a=1; Path=/", "b=2; Path=/"]
        assert response.headers["location"] == "https://www.reddit.com/login"
