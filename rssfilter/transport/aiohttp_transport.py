"""
Direct Socket Transport
=======================

aiohttp based transport used by the CLI, the embedded server and the
cloud function. Compressed bodies (gzip, deflate, br) are negotiated and
decoded by aiohttp.
"""

import asyncio
import ssl
from typing import Optional

import aiohttp
import certifi
from multidict import CIMultiDict

from .base import Transport
from ..config.settings import RssFilterSettings, get_settings
from ..http.models import HttpRequest, HttpResponse
from ..http.cache_status import CacheStatus
from ..utils.exceptions import FetchTimeoutError, NetworkError, ResponseBodyError
from ..utils.logging import get_logger_for_component


class AiohttpTransport(Transport):
    """Transport issuing requests through one pooled ``aiohttp.ClientSession``."""

    def __init__(
        self,
        settings: Optional[RssFilterSettings] = None,
        timeout: Optional[float] = None,
        max_body_size: Optional[int] = None,
    ):
        """Initialize the transport.

        Args:
            settings: Application settings (default: global settings)
            timeout: Total request timeout in seconds (default from config)
            max_body_size: Bodies declaring a larger Content-Length are not
                read; the response guard rejects them afterwards
        """
        settings = settings or get_settings()
        super().__init__(settings.cache.status_header_name)
        self.timeout = timeout or settings.limits.request_timeout
        self.max_body_size = max_body_size
        self.user_agent = settings.http.user_agent
        self.logger = get_logger_for_component("transport")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(ssl=self.ssl_context, enable_cleanup_closed=True)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={"User-Agent": self.user_agent},
                auto_decompress=True,
            )
        return self._session

    async def send(self, request: HttpRequest) -> HttpResponse:
        method = self.check_method(request)
        self.check_headers(request)

        headers = CIMultiDict(request.headers)
        # aiohttp advertises the encodings it can decode
        headers.popall("Accept-Encoding", None)

        session = self._get_session()
        self.logger.debug(f"{method} {request.url}")

        try:
            async with session.request(
                method,
                request.url,
                headers=headers,
                data=request.body or None,
                allow_redirects=True,
            ) as response:
                response_headers = CIMultiDict(response.headers)
                declared = response.content_length

                if self.max_body_size is not None and declared is not None and declared > self.max_body_size:
                    self.logger.warning(
                        f"Not reading body of {request.url}: declared {declared} bytes"
                    )
                    body = b""
                else:
                    body = await response.read()

                status = response.status

        except asyncio.TimeoutError as e:
            raise FetchTimeoutError(
                f"Request timeout after {self.timeout}s", url=request.url
            ) from e
        except aiohttp.ClientPayloadError as e:
            raise ResponseBodyError(
                f"Could not read response body: {e}", url=request.url
            ) from e
        except aiohttp.ClientError as e:
            raise NetworkError(str(e) or type(e).__name__, url=request.url) from e

        encoding = response_headers.get("Content-Encoding", "").strip().lower()
        if encoding and encoding != "identity" and body:
            # Body is already decoded; the wire framing no longer applies
            response_headers.popall("Content-Encoding", None)
            response_headers.popall("Content-Length", None)

        self.tag_cache_status(response_headers, CacheStatus.MISS.value)
        self.logger.debug(f"{request.url} -> {status} ({len(body)} bytes)")
        return HttpResponse(status=status, headers=response_headers, body=body)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
