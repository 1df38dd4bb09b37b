"""
Cache Status Vocabulary
=======================

Values reported in the cache status response header. Edge platforms report
their own status in ``cf-cache-status``; every transport republishes a
normalised value under the configured header name.
"""

from enum import Enum
from typing import Optional

CF_CACHE_STATUS_HEADER = "cf-cache-status"
DEFAULT_STATUS_HEADER = "x-rssfilter-cache-status"


class CacheStatus(str, Enum):
    """Known cache states."""

    HIT = "HIT"
    MISS = "MISS"
    DYNAMIC = "DYNAMIC"
    EXPIRED = "EXPIRED"
    REVALIDATED = "REVALIDATED"
    UPDATING = "UPDATING"
    BYPASS = "BYPASS"


def normalize_cache_status(value: Optional[str]) -> str:
    """Upper-case known statuses, pass anything else through verbatim.

    A missing value means the platform did not serve from cache: ``MISS``.
    """
    if value is None:
        return CacheStatus.MISS.value
    try:
        return CacheStatus(value.strip().upper()).value
    except ValueError:
        return value
