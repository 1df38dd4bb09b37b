"""
Base Transport Interface
========================

Abstract base class for the outbound HTTP backends. The pipeline depends on
this interface only; a concrete backend is chosen when the pipeline is built.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

from multidict import CIMultiDict

from ..http.models import HttpRequest, HttpResponse
from ..http.cache_status import DEFAULT_STATUS_HEADER
from ..utils.exceptions import HeaderEncodingError, UnsupportedMethodError

SUPPORTED_METHODS = frozenset({"GET", "HEAD", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"})

# RFC 7230 token
_HEADER_NAME = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
_FORBIDDEN_VALUE_CHARS = ("\r", "\n", "\x00")


class Transport(ABC):
    """Sends one HTTP request and returns one HTTP response.

    Implementations raise a ``TransportError`` subclass for network failure,
    timeout, unsupported method or header encoding problems, never retry,
    and set the cache status header on every response they return.
    """

    def __init__(self, status_header_name: str = DEFAULT_STATUS_HEADER):
        self.status_header_name = status_header_name

    @abstractmethod
    async def send(self, request: HttpRequest) -> HttpResponse:
        """Send the request upstream."""
        pass

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""
        return None

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def tag_cache_status(self, headers: CIMultiDict, status: str) -> CIMultiDict:
        """Set (replacing any upstream value) the cache status header."""
        headers[self.status_header_name] = status
        return headers

    @staticmethod
    def check_method(request: HttpRequest) -> str:
        method = request.method.upper()
        if method not in SUPPORTED_METHODS:
            raise UnsupportedMethodError(method, url=request.url)
        return method

    @staticmethod
    def check_headers(request: HttpRequest) -> None:
        """Reject header names and values that cannot go on the wire."""
        for name, value in request.headers.items():
            if not isinstance(name, str) or not _HEADER_NAME.match(name):
                raise HeaderEncodingError(
                    f"Invalid header name: {name!r}", header_name=str(name), url=request.url
                )
            if isinstance(value, bytes):
                try:
                    value = value.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise HeaderEncodingError(
                        f"Header {name} is not valid UTF-8: {e}", header_name=name, url=request.url
                    ) from e
            if any(ch in value for ch in _FORBIDDEN_VALUE_CHARS):
                raise HeaderEncodingError(
                    f"Header {name} contains control characters", header_name=name, url=request.url
                )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} status_header={self.status_header_name!r}>"


def header_text(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)
