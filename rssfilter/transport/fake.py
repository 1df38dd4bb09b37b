"""
Scripted Transport
==================

Deterministic transport for tests and offline runs. Responses and errors
are looked up by exact URL in an explicit configuration table.
"""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from multidict import CIMultiDict

from .base import Transport
from ..http.models import HttpRequest, HttpResponse, make_headers
from ..http.cache_status import CacheStatus, DEFAULT_STATUS_HEADER
from ..utils.exceptions import (
    FetchTimeoutError,
    HeaderEncodingError,
    NetworkError,
    TransportError,
    UnsupportedMethodError,
)


class FakeErrorKind(str, Enum):
    """Transport failures a fake can be scripted to raise."""
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNSUPPORTED_METHOD = "unsupported_method"
    HEADER_ENCODING = "header_encoding"


@dataclass
class FakeError:
    kind: FakeErrorKind = FakeErrorKind.NETWORK
    message: str = "connection refused"

    def to_exception(self, request: HttpRequest) -> TransportError:
        if self.kind == FakeErrorKind.TIMEOUT:
            return FetchTimeoutError(self.message, url=request.url)
        if self.kind == FakeErrorKind.UNSUPPORTED_METHOD:
            return UnsupportedMethodError(request.method, url=request.url)
        if self.kind == FakeErrorKind.HEADER_ENCODING:
            return HeaderEncodingError(self.message, url=request.url)
        return NetworkError(self.message, url=request.url)


@dataclass
class FakeResponse:
    """Canned upstream response."""

    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def rss(cls, body, status: int = 200, content_type: str = "application/rss+xml",
            headers: Optional[Dict[str, str]] = None) -> "FakeResponse":
        if isinstance(body, str):
            body = body.encode("utf-8")
        all_headers = {"Content-Type": content_type}
        all_headers.update(headers or {})
        return cls(status=status, headers=all_headers, body=body)

    @classmethod
    def xml(cls, body, status: int = 200, headers: Optional[Dict[str, str]] = None) -> "FakeResponse":
        return cls.rss(body, status=status, content_type="application/xml", headers=headers)

    @classmethod
    def json(cls, data: Any, status: int = 200) -> "FakeResponse":
        return cls(
            status=status,
            headers={"Content-Type": "application/json"},
            body=json.dumps(data).encode("utf-8"),
        )

    def to_http_response(self) -> HttpResponse:
        return HttpResponse(status=self.status, headers=make_headers(self.headers), body=self.body)


@dataclass
class FakeTransportConfig:
    """URL table driving a ``FakeTransport``. Errors win over responses."""

    responses: Dict[str, FakeResponse] = field(default_factory=dict)
    errors: Dict[str, FakeError] = field(default_factory=dict)
    cache_status: str = CacheStatus.MISS.value


class FakeTransport(Transport):
    """Transport answering from a ``FakeTransportConfig``.

    Unmatched URLs get ``404 Not Found``. Every request is recorded in
    ``requests`` so tests can assert on what would have gone upstream.
    """

    def __init__(self, config: Optional[FakeTransportConfig] = None,
                 status_header_name: str = DEFAULT_STATUS_HEADER):
        super().__init__(status_header_name)
        self.config = config or FakeTransportConfig()
        self.requests: List[HttpRequest] = []

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)

        error = self.config.errors.get(request.url)
        if error is not None:
            raise error.to_exception(request)

        canned = self.config.responses.get(request.url)
        if canned is None:
            response = HttpResponse(status=404, headers=CIMultiDict(), body=b"Not Found")
        else:
            response = canned.to_http_response()

        self.tag_cache_status(response.headers, self.config.cache_status)
        return response

    @classmethod
    def with_responses(cls, responses: Dict[str, FakeResponse], **kwargs) -> "FakeTransport":
        return cls(FakeTransportConfig(responses=dict(responses)), **kwargs)
