"""
Feed Request Handler
====================

Front-end agnostic handling of one incoming filter request: route check,
query parameter parsing, header sanitisation, pipeline run and mapping of
errors onto HTTP statuses. The cloud function and the embedded server only
translate their native request and response shapes around this class.
"""

import uuid
from typing import Optional
from urllib.parse import parse_qsl

from multidict import CIMultiDict

from ..config.settings import RssFilterSettings, get_settings
from ..http.headers import filter_request_headers
from ..http.models import HeadersLike, HttpResponse
from ..processing.feed_filter import FilterSpec
from ..processing.pipeline import FilterPipeline
from ..transport import Transport, create_transport
from ..utils.exceptions import (
    FeedParseError,
    FeedTooLargeError,
    InvalidContentTypeError,
    RssFilterError,
    TransportError,
    ValidationError,
    handle_exception,
)
from ..utils.logging import PerformanceLogger, get_logger_for_component
from ..utils.validators import (
    GUID_FILTER_PARAM,
    LINK_FILTER_PARAM,
    TITLE_FILTER_PARAM,
    URL_PARAM,
    FilterParams,
    validate_filter_params,
)

NOT_FOUND_CACHE_CONTROL = "public, max-age=86400"
TEXT_PLAIN = "text/plain; charset=utf-8"


def parse_filter_params(query_string: str) -> FilterParams:
    """Parse a raw query string. Filter parameters may repeat; the first
    ``url`` wins."""
    params = FilterParams()
    for name, value in parse_qsl(query_string or "", keep_blank_values=True):
        if name == URL_PARAM:
            if params.url is None:
                params.url = value
        elif name == TITLE_FILTER_PARAM:
            params.title_patterns.append(value)
        elif name == GUID_FILTER_PARAM:
            params.guid_patterns.append(value)
        elif name == LINK_FILTER_PARAM:
            params.link_patterns.append(value)
    return params


def status_for_error(error: Exception) -> int:
    """HTTP status reported to the caller for a failed request."""
    if isinstance(error, TransportError):
        return 502
    if isinstance(error, FeedTooLargeError):
        return 413
    if isinstance(error, InvalidContentTypeError):
        return 415
    if isinstance(error, (FeedParseError, ValidationError)):
        return 400
    # Serialization, configuration and unexpected errors
    return 500


def text_response(status: int, message: str, headers: Optional[HeadersLike] = None) -> HttpResponse:
    response = HttpResponse(status=status, headers=CIMultiDict(headers or {}), body=message.encode("utf-8"))
    response.headers["Content-Type"] = TEXT_PLAIN
    return response


class FeedRequestHandler:
    """Serve ``GET /?url=...&title_filter_regex=...`` requests."""

    def __init__(self, settings: Optional[RssFilterSettings] = None, transport: Optional[Transport] = None):
        """Initialize handler.

        Args:
            settings: Application settings (default: global settings)
            transport: Shared outbound transport (default: built from
                settings and closed by ``close()``)
        """
        self.settings = settings or get_settings()
        self._owns_transport = transport is None
        self.transport = transport or create_transport(self.settings)
        self.logger = get_logger_for_component("handler")

    async def handle(
        self,
        method: str,
        path: str,
        query_string: str = "",
        headers: HeadersLike = None,
        request_id: Optional[str] = None,
    ) -> HttpResponse:
        """Handle one request and always return a response."""
        request_id = request_id or uuid.uuid4().hex
        logger = self.logger.bind(request_id=request_id)

        logger.info(f"Handling request {method} {path}")

        if path != "/":
            logger.info(f"Path not found: {path}", extra={"status": 404})
            return text_response(404, "Not Found", {"Cache-Control": NOT_FOUND_CACHE_CONTROL})

        if method.upper() != "GET":
            logger.info(f"Method not allowed: {method}", extra={"status": 405})
            return text_response(405, "Method Not Allowed", {"Allow": "GET"})

        with PerformanceLogger(logger, "feed request") as perf:
            response = await self._filter(query_string, headers, logger, perf)
            perf.add_context(status=response.status)

        return response

    async def _filter(self, query_string, headers, logger, perf) -> HttpResponse:
        try:
            params = validate_filter_params(parse_filter_params(query_string))
            perf.add_context(url=params.url)

            spec = FilterSpec.from_strings(
                title=params.title_patterns,
                guid=params.guid_patterns,
                link=params.link_patterns,
            )
            upstream_headers = filter_request_headers(
                headers,
                accept=self.settings.http.accept,
                user_agent=self.settings.http.user_agent,
            )

            pipeline = FilterPipeline(spec, transport=self.transport, settings=self.settings)
            response = await pipeline.fetch_and_filter(params.url, upstream_headers)

            if pipeline.last_outcome is not None:
                perf.add_context(
                    items_before=pipeline.last_outcome.items_before,
                    items_after=pipeline.last_outcome.items_after,
                )
            return response

        except RssFilterError as e:
            status = status_for_error(e)
            log = logger.warning if status < 500 else logger.error
            log(f"Request failed: {e}", extra={**e.to_dict(), "status": status})
            return text_response(status, e.user_message)

        except Exception as e:
            error = handle_exception(e, logger, "filter feed")
            return text_response(500, error.user_message)

    async def close(self) -> None:
        if self._owns_transport:
            await self.transport.close()

    async def __aenter__(self) -> "FeedRequestHandler":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
