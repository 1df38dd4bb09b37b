"""
Unit Tests for Transports
=========================

Tests for the scripted transport, the edge platform fetch adapter, the
shared request checks and the backend factory.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest
from multidict import CIMultiDict

from rssfilter.config.settings import RssFilterSettings
from rssfilter.http.models import HttpRequest
from rssfilter.transport import (
    AiohttpTransport,
    FakeError,
    FakeErrorKind,
    FakeResponse,
    FakeTransport,
    FakeTransportConfig,
    PlatformFetchTransport,
    PlatformRequest,
    PlatformResponse,
    compute_cache_key,
    create_transport,
)
from rssfilter.utils.exceptions import (
    ConfigurationError,
    FetchTimeoutError,
    HeaderEncodingError,
    NetworkError,
    UnsupportedMethodError,
)

from conftest import FEED_URL

STATUS_HEADER = "x-rssfilter-cache-status"


class TestFakeTransport:
    """Test the scripted transport."""

    @pytest.mark.asyncio
    async def test_exact_url_match(self, fake_transport_factory):
        transport = fake_transport_factory({FEED_URL: FakeResponse.rss(b"<rss/>")})

        response = await transport.send(HttpRequest(url=FEED_URL))

        assert response.status == 200
        assert response.body == b"<rss/>"
        assert response.headers["Content-Type"] == "application/rss+xml"
        assert response.headers[STATUS_HEADER] == "MISS"

    @pytest.mark.asyncio
    async def test_unmatched_url_is_404(self, fake_transport_factory):
        transport = fake_transport_factory({FEED_URL: FakeResponse.rss(b"<rss/>")})

        response = await transport.send(HttpRequest(url=FEED_URL + "/other"))

        assert response.status == 404
        assert response.body == b"Not Found"
        assert response.headers[STATUS_HEADER] == "MISS"

    @pytest.mark.asyncio
    async def test_configured_cache_status(self, fake_transport_factory):
        transport = fake_transport_factory({FEED_URL: FakeResponse.rss(b"<rss/>")}, cache_status="HIT")

        response = await transport.send(HttpRequest(url=FEED_URL))

        assert response.headers[STATUS_HEADER] == "HIT"

    @pytest.mark.asyncio
    async def test_cache_status_replaces_upstream_value(self, fake_transport_factory):
        canned = FakeResponse.rss(b"<rss/>", headers={STATUS_HEADER: "BOGUS"})
        transport = fake_transport_factory({FEED_URL: canned})

        response = await transport.send(HttpRequest(url=FEED_URL))

        assert response.headers.getall(STATUS_HEADER) == ["MISS"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind,exception", [
        (FakeErrorKind.NETWORK, NetworkError),
        (FakeErrorKind.TIMEOUT, FetchTimeoutError),
        (FakeErrorKind.UNSUPPORTED_METHOD, UnsupportedMethodError),
        (FakeErrorKind.HEADER_ENCODING, HeaderEncodingError),
    ])
    async def test_scripted_errors(self, fake_transport_factory, kind, exception):
        transport = fake_transport_factory(
            responses={FEED_URL: FakeResponse.rss(b"<rss/>")},
            errors={FEED_URL: FakeError(kind, "scripted failure")},
        )

        with pytest.raises(exception) as exc_info:
            await transport.send(HttpRequest(url=FEED_URL))

        assert exc_info.value.url == FEED_URL

    @pytest.mark.asyncio
    async def test_requests_recorded(self, fake_transport_factory):
        transport = fake_transport_factory()

        await transport.send(HttpRequest(url=FEED_URL, headers={"Accept": "application/rss+xml"}))

        assert len(transport.requests) == 1
        assert transport.requests[0].headers["accept"] == "application/rss+xml"

    @pytest.mark.asyncio
    async def test_default_config(self):
        response = await FakeTransport().send(HttpRequest(url=FEED_URL))

        assert response.status == 404
        assert response.headers[STATUS_HEADER] == "MISS"

    def test_canned_response_helpers(self):
        assert FakeResponse.xml("<rss/>").headers == {"Content-Type": "application/xml"}
        assert FakeResponse.xml("<rss/>").body == b"<rss/>"

        json_response = FakeResponse.json({"error": "nope"}, status=400)
        assert json_response.status == 400
        assert json_response.body == b'{"error": "nope"}'

    @pytest.mark.asyncio
    async def test_with_responses(self):
        transport = FakeTransport.with_responses({FEED_URL: FakeResponse(status=204)})

        response = await transport.send(HttpRequest(url=FEED_URL))

        assert response.status == 204
        assert isinstance(transport.config, FakeTransportConfig)


class TestCacheKey:
    """Test the platform cache key derivation."""

    def test_deterministic(self):
        headers = {"Accept": "application/rss+xml", "User-Agent": "test"}

        assert compute_cache_key("GET", FEED_URL, headers) == compute_cache_key("GET", FEED_URL, headers)

    def test_format(self):
        key = compute_cache_key("GET", FEED_URL, {}, prefix="feeds")

        assert key.startswith("feeds-")
        assert len(key) == len("feeds-") + 16

    def test_header_order_and_case_ignored(self):
        first = compute_cache_key("GET", FEED_URL, [("Accept", "a"), ("User-Agent", "b")])
        second = compute_cache_key("GET", FEED_URL, [("user-agent", "b"), ("accept", "a")])

        assert first == second

    @pytest.mark.parametrize("method,url,headers", [
        ("GET", FEED_URL + "?page=2", {"Accept": "a"}),
        ("HEAD", FEED_URL, {"Accept": "a"}),
        ("GET", FEED_URL, {"Accept": "b"}),
        ("GET", FEED_URL, {"Accept": "a", "Cookie": "c=1"}),
    ])
    def test_any_difference_changes_key(self, method, url, headers):
        baseline = compute_cache_key("GET", FEED_URL, {"Accept": "a"})

        assert compute_cache_key(method, url, headers) != baseline


class TestPlatformFetchTransport:
    """Test the edge platform fetch adapter."""

    def make_transport(self, settings, response=None, side_effect=None):
        fetch = AsyncMock(return_value=response, side_effect=side_effect)
        return PlatformFetchTransport(fetch, settings=settings), fetch

    @pytest.mark.asyncio
    async def test_platform_request(self, settings):
        transport, fetch = self.make_transport(
            settings, PlatformResponse(200, {"Content-Type": "application/rss+xml"}, b"<rss/>")
        )
        request = HttpRequest(url=FEED_URL, headers={"Accept": "application/rss+xml"})

        await transport.send(request)

        platform_request = fetch.await_args.args[0]
        assert isinstance(platform_request, PlatformRequest)
        assert platform_request.url == FEED_URL
        assert platform_request.method == "GET"
        assert platform_request.headers == {"Accept": "application/rss+xml"}
        assert platform_request.body is None
        assert platform_request.cf == {
            "cacheEverything": True,
            "cacheTtl": 300,
            "cacheKey": compute_cache_key("GET", FEED_URL, request.headers, "http-cache"),
            "cacheTtlByStatus": {"200-299": 300, "300-399": 150},
        }

    @pytest.mark.asyncio
    async def test_repeated_headers_joined(self, settings):
        transport, fetch = self.make_transport(settings, PlatformResponse(200))
        headers = CIMultiDict([("Accept", "a"), ("accept", "b"), ("Cookie", "c=1")])

        await transport.send(HttpRequest(url=FEED_URL, headers=headers))

        assert fetch.await_args.args[0].headers == {"Accept": "a, b", "Cookie": "c=1"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("platform_status,expected", [
        ("hit", "HIT"),
        ("DYNAMIC", "DYNAMIC"),
        ("Expired", "EXPIRED"),
        ("some-Other", "some-Other"),
    ])
    async def test_cache_status_reported(self, settings, platform_status, expected):
        transport, _ = self.make_transport(
            settings, PlatformResponse(200, {"cf-cache-status": platform_status}, b"")
        )

        response = await transport.send(HttpRequest(url=FEED_URL))

        assert response.headers[STATUS_HEADER] == expected
        assert response.headers["cf-cache-status"] == platform_status

    @pytest.mark.asyncio
    async def test_missing_cache_status_is_miss(self, settings):
        transport, _ = self.make_transport(settings, PlatformResponse(503, None, b"down"))

        response = await transport.send(HttpRequest(url=FEED_URL))

        assert response.status == 503
        assert response.body == b"down"
        assert response.headers[STATUS_HEADER] == "MISS"

    @pytest.mark.asyncio
    async def test_timeout(self, settings):
        transport, _ = self.make_transport(settings, side_effect=asyncio.TimeoutError())

        with pytest.raises(FetchTimeoutError):
            await transport.send(HttpRequest(url=FEED_URL))

    @pytest.mark.asyncio
    async def test_fetch_failure(self, settings):
        transport, _ = self.make_transport(settings, side_effect=RuntimeError("socket closed"))

        with pytest.raises(NetworkError, match="socket closed"):
            await transport.send(HttpRequest(url=FEED_URL))

    @pytest.mark.asyncio
    async def test_unsupported_method(self, settings):
        transport, fetch = self.make_transport(settings, PlatformResponse(200))

        with pytest.raises(UnsupportedMethodError) as exc_info:
            await transport.send(HttpRequest(url=FEED_URL, method="TRACE"))

        assert exc_info.value.method == "TRACE"
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name,value", [
        ("Bad Header", "value"),
        ("X-Injected", "value\r\nSet-Cookie: evil=1"),
        ("X-Null", "a\x00b"),
        ("X-Bytes", b"\xff\xfe"),
    ])
    async def test_header_encoding(self, settings, name, value):
        transport, fetch = self.make_transport(settings, PlatformResponse(200))

        with pytest.raises(HeaderEncodingError):
            await transport.send(HttpRequest(url=FEED_URL, headers=CIMultiDict([(name, value)])))

        fetch.assert_not_awaited()


class TestCreateTransport:
    """Test backend selection."""

    @pytest.mark.asyncio
    async def test_default_backend(self, settings):
        transport = create_transport(settings)

        assert isinstance(transport, AiohttpTransport)
        assert transport.max_body_size == settings.limits.max_feed_size
        assert transport.status_header_name == STATUS_HEADER
        await transport.close()

    def test_platform_backend_needs_fetch(self):
        settings = RssFilterSettings(transport={"backend": "platform_fetch"})

        with pytest.raises(ConfigurationError):
            create_transport(settings)

    def test_platform_backend(self):
        settings = RssFilterSettings(transport={"backend": "platform_fetch"})

        transport = create_transport(settings, fetch=AsyncMock())

        assert isinstance(transport, PlatformFetchTransport)
