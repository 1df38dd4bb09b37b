"""Outbound HTTP transports and the backend factory."""

from typing import Optional

from .base import Transport, SUPPORTED_METHODS
from .aiohttp_transport import AiohttpTransport
from .platform_fetch import (
    PlatformFetch,
    PlatformFetchTransport,
    PlatformRequest,
    PlatformResponse,
    compute_cache_key,
)
from .fake import FakeError, FakeErrorKind, FakeResponse, FakeTransport, FakeTransportConfig
from ..config.settings import RssFilterSettings, TransportBackend, get_settings
from ..utils.exceptions import ConfigurationError, ErrorCode


def create_transport(
    settings: Optional[RssFilterSettings] = None,
    fetch: Optional[PlatformFetch] = None,
) -> Transport:
    """Build the transport selected by ``settings.transport.backend``.

    Raises:
        ConfigurationError: If the platform backend is selected without a
            fetch primitive
    """
    settings = settings or get_settings()
    backend = settings.transport.backend

    if backend == TransportBackend.PLATFORM_FETCH:
        if fetch is None:
            raise ConfigurationError(
                "The platform_fetch transport needs a fetch primitive",
                config_key="transport.backend",
                error_code=ErrorCode.CONFIG_MISSING,
            )
        return PlatformFetchTransport(fetch, settings=settings)

    return AiohttpTransport(settings=settings, max_body_size=settings.limits.max_feed_size)


__all__ = [
    "Transport",
    "SUPPORTED_METHODS",
    "AiohttpTransport",
    "PlatformFetch",
    "PlatformFetchTransport",
    "PlatformRequest",
    "PlatformResponse",
    "compute_cache_key",
    "FakeError",
    "FakeErrorKind",
    "FakeResponse",
    "FakeTransport",
    "FakeTransportConfig",
    "create_transport",
]
