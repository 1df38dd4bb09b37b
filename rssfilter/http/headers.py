"""
Client header sanitisation applied by the front-ends before proxying.

Headers come from the caller, but the request is re-issued against another
host, so ``Host`` and every ``x-`` prefixed header are dropped. ``Accept``
and ``User-Agent`` are forced to the proxy's own values.
"""

from multidict import CIMultiDict

from ..config.settings import DEFAULT_USER_AGENT, RSS_ACCEPT
from .models import HeadersLike, make_headers

HEADER_PREFIXES_TO_STRIP = ("x-",)
HEADERS_TO_STRIP = frozenset({"host"})

# Recomputed by whichever server writes the response
FRAMING_HEADERS = frozenset(
    {"content-length", "transfer-encoding", "content-encoding", "connection", "keep-alive"}
)


def filter_request_headers(
    headers: HeadersLike,
    accept: str = RSS_ACCEPT,
    user_agent: str = DEFAULT_USER_AGENT,
) -> CIMultiDict:
    """Return a sanitised copy of client headers for the upstream request."""
    filtered = CIMultiDict()
    for name, value in make_headers(headers).items():
        lowered = name.lower()
        if lowered in HEADERS_TO_STRIP or lowered.startswith(HEADER_PREFIXES_TO_STRIP):
            continue
        filtered.add(name, value)

    filtered["Accept"] = accept
    filtered["User-Agent"] = user_agent
    return filtered


def strip_framing_headers(headers: HeadersLike) -> CIMultiDict:
    """Drop headers describing the upstream wire framing of the body."""
    return CIMultiDict(
        (name, value)
        for name, value in make_headers(headers).items()
        if name.lower() not in FRAMING_HEADERS
    )
