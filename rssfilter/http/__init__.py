"""HTTP value types shared by transports, the pipeline and the front-ends."""

from .models import HttpRequest, HttpResponse, make_headers
from .cache_status import (
    CF_CACHE_STATUS_HEADER,
    DEFAULT_STATUS_HEADER,
    CacheStatus,
    normalize_cache_status,
)

__all__ = [
    "HttpRequest",
    "HttpResponse",
    "make_headers",
    "CacheStatus",
    "normalize_cache_status",
    "CF_CACHE_STATUS_HEADER",
    "DEFAULT_STATUS_HEADER",
]
