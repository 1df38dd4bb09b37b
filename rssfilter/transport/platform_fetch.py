"""
Edge Platform Fetch Transport
=============================

Adapter over a host-provided async ``fetch`` primitive, as found on edge
worker runtimes. The request carries cache properties so the platform's own
edge cache may answer; the platform's verdict is reported through the cache
status header.
"""

import asyncio
import hashlib
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from .base import Transport, header_text
from ..config.settings import RssFilterSettings, get_settings
from ..http.models import HttpRequest, HttpResponse, HeadersLike, make_headers
from ..http.cache_status import CF_CACHE_STATUS_HEADER, normalize_cache_status
from ..utils.exceptions import FetchTimeoutError, NetworkError, TransportError
from ..utils.logging import get_logger_for_component


@dataclass
class PlatformRequest:
    """Request handed to the platform fetch primitive."""
    url: str
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None
    cf: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PlatformResponse:
    """Response returned by the platform fetch primitive."""
    status: int
    headers: HeadersLike = None
    body: bytes = b""


PlatformFetch = Callable[[PlatformRequest], Awaitable[PlatformResponse]]


def compute_cache_key(method: str, url: str, headers: HeadersLike, prefix: str = "http-cache") -> str:
    """Deterministic cache key over method, URL and every header pair.

    Header names are lower-cased and pairs sorted, so header order and name
    case do not change the key.
    """
    pairs = sorted(
        (name.lower(), header_text(value)) for name, value in make_headers(headers).items()
    )

    digest = hashlib.sha256()
    digest.update(method.upper().encode("utf-8"))
    digest.update(b"\x00")
    digest.update(url.encode("utf-8"))
    for name, value in pairs:
        digest.update(b"\x00")
        digest.update(name.encode("utf-8"))
        digest.update(b"\x00")
        digest.update(value.encode("utf-8"))

    return f"{prefix}-{digest.hexdigest()[:16]}"


class PlatformFetchTransport(Transport):
    """Transport backed by an injected edge-platform fetch callable."""

    def __init__(self, fetch: PlatformFetch, settings: Optional[RssFilterSettings] = None):
        settings = settings or get_settings()
        super().__init__(settings.cache.status_header_name)
        self.fetch = fetch
        self.ttl = settings.cache.ttl_seconds
        self.cache_key_prefix = settings.cache.cache_key_prefix
        self.logger = get_logger_for_component("transport")

    def cache_properties(self, request: HttpRequest) -> Dict[str, Any]:
        """Edge cache directives attached to the outbound request."""
        return {
            "cacheEverything": True,
            "cacheTtl": self.ttl,
            "cacheKey": compute_cache_key(
                request.method, request.url, request.headers, self.cache_key_prefix
            ),
            "cacheTtlByStatus": {
                "200-299": self.ttl,
                "300-399": self.ttl // 2,
            },
        }

    async def send(self, request: HttpRequest) -> HttpResponse:
        method = self.check_method(request)
        self.check_headers(request)

        # The primitive takes a flat mapping; repeated headers are comma joined
        flat_headers: Dict[str, str] = {}
        seen = set()
        for name in request.headers.keys():
            if name.lower() in seen:
                continue
            seen.add(name.lower())
            flat_headers[name] = ", ".join(
                header_text(v) for v in request.headers.getall(name)
            )

        platform_request = PlatformRequest(
            url=request.url,
            method=method,
            headers=flat_headers,
            body=request.body or None,
            cf=self.cache_properties(request),
        )

        try:
            platform_response = await self.fetch(platform_request)
        except TransportError:
            raise
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise FetchTimeoutError(f"Platform fetch timed out: {e}", url=request.url) from e
        except Exception as e:
            raise NetworkError(f"Platform fetch failed: {e}", url=request.url) from e

        headers = make_headers(platform_response.headers)
        cache_status = normalize_cache_status(headers.get(CF_CACHE_STATUS_HEADER))
        self.tag_cache_status(headers, cache_status)

        self.logger.debug(
            f"{request.url} -> {platform_response.status} (cache {cache_status})",
            extra={"cache_key": platform_request.cf["cacheKey"]},
        )
        return HttpResponse(
            status=platform_response.status,
            headers=headers,
            body=platform_response.body or b"",
        )
