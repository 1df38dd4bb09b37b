"""
Filter Pipeline Orchestrator
============================

Drives one request through transport, response guard and feed filter
engine, then rebuilds the response around the filtered body. Nothing is
kept between runs.
"""

from typing import Optional

from multidict import CIMultiDict

from ..config.settings import RssFilterSettings, get_settings
from ..http.models import HeadersLike, HttpRequest, HttpResponse, make_headers
from ..transport import Transport, create_transport
from ..utils.logging import get_logger_for_component

from .feed_filter import FeedFilterEngine, FilterOutcome, FilterSpec
from .guard import ResponseGuard


class FilterPipeline:
    """Fetch, guard, filter and reconstruct a feed response.

    The pipeline suspends only while the transport is sending; guarding,
    parsing and serialization run synchronously on the buffered body.
    Non-2xx upstream responses are returned unchanged.
    """

    def __init__(
        self,
        filter_spec: FilterSpec,
        transport: Optional[Transport] = None,
        guard: Optional[ResponseGuard] = None,
        engine: Optional[FeedFilterEngine] = None,
        settings: Optional[RssFilterSettings] = None,
    ):
        """Initialize the pipeline.

        Args:
            filter_spec: Compiled filter expressions for this request
            transport: Outbound transport (default: built from settings and
                closed with the pipeline)
            guard: Response guard (default: configured size ceiling)
            engine: Feed filter engine
            settings: Application settings (default: global settings)
        """
        self.settings = settings or get_settings()
        self.filter_spec = filter_spec
        self.logger = get_logger_for_component("pipeline")

        self._owns_transport = transport is None
        self.transport = transport or create_transport(self.settings)
        self.guard = guard or ResponseGuard(max_size=self.settings.limits.max_feed_size)
        self.engine = engine or FeedFilterEngine()

        self.last_outcome: Optional[FilterOutcome] = None

    async def fetch(self, url: str, headers: HeadersLike = None) -> HttpResponse:
        """GET the URL with the given headers and apply the size check.

        Headers are sent as given; sanitising client headers is the
        caller's job.

        Raises:
            TransportError: If the transport fails
            FeedTooLargeError: If the declared length exceeds the ceiling
        """
        request = HttpRequest(url=url, method="GET", headers=make_headers(headers))
        self.logger.debug(f"Requesting URL: {url}")

        response = await self.transport.send(request)

        # Applies to every status, success or not
        self.guard.check_size(response, url)
        return response

    def filter_response(self, response: HttpResponse, url: Optional[str] = None) -> HttpResponse:
        """Filter a fetched response, or pass it through if it is not 2xx.

        Raises:
            InvalidContentTypeError: If a 2xx response is not a feed type
            FeedParseError: If the body is not a recognised feed
            FeedSerializationError: If the filtered feed cannot be written
        """
        if not response.is_success:
            self.logger.info(
                f"Upstream returned {response.status}, passing response through",
                extra={"status": response.status},
            )
            self.last_outcome = None
            return response

        self.guard.check_content_type(response, url)
        self.logger.debug("Received response", extra={"status": response.status})

        outcome = self.engine.filter_feed(response.body, self.filter_spec, feed_url=url)
        self.last_outcome = outcome

        return HttpResponse(
            status=response.status,
            headers=CIMultiDict(response.headers),
            body=outcome.body,
        )

    async def fetch_and_filter(self, url: str, headers: HeadersLike = None) -> HttpResponse:
        """Run the whole pipeline for one URL."""
        response = await self.fetch(url, headers)
        return self.filter_response(response, url)

    async def aclose(self) -> None:
        if self._owns_transport:
            await self.transport.close()

    async def __aenter__(self) -> "FilterPipeline":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()
