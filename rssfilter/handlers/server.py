"""
Embedded HTTP Server
====================

aiohttp.web application serving the filter on ``/`` for container and local
deployments. One transport (and its connection pool) is shared by all
requests of the application.
"""

from typing import Optional

from aiohttp import web

from ..config.settings import RssFilterSettings, get_settings
from ..http.headers import strip_framing_headers
from ..transport import Transport, create_transport
from ..utils.logging import get_logger_for_component
from .request import FeedRequestHandler

HANDLER_KEY = web.AppKey("feed_request_handler", FeedRequestHandler)


def create_app(settings: Optional[RssFilterSettings] = None, transport: Optional[Transport] = None) -> web.Application:
    """Build the web application.

    Args:
        settings: Application settings (default: global settings)
        transport: Outbound transport; when omitted one is created on
            startup and closed on cleanup
    """
    settings = settings or get_settings()
    logger = get_logger_for_component("server")
    app = web.Application()

    async def on_startup(app: web.Application) -> None:
        app[HANDLER_KEY] = FeedRequestHandler(
            settings=settings,
            transport=transport or create_transport(settings),
        )
        logger.info("Feed filter application started")

    async def on_cleanup(app: web.Application) -> None:
        handler = app[HANDLER_KEY]
        if transport is None:
            await handler.transport.close()
        logger.info("Feed filter application stopped")

    async def handle(request: web.Request) -> web.Response:
        response = await request.app[HANDLER_KEY].handle(
            request.method,
            request.path,
            request.query_string,
            request.headers,
        )
        return web.Response(
            status=response.status,
            headers=strip_framing_headers(response.headers),
            body=response.body,
        )

    app.on_startup.append(on_startup)
    app.on_cleanup.append(on_cleanup)
    app.router.add_route("*", "/{tail:.*}", handle)
    return app


def run_server(settings: Optional[RssFilterSettings] = None, host: Optional[str] = None, port: Optional[int] = None) -> None:
    """Serve until interrupted."""
    settings = settings or get_settings()
    web.run_app(
        create_app(settings),
        host=host or settings.server.host,
        port=port or settings.server.port,
        print=None,
    )
