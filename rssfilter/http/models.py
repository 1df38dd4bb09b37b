"""
HTTP Request/Response Models
============================

Transport-neutral request and response values. Headers are case-insensitive
multimaps so repeated upstream headers survive the round trip.
"""

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Tuple, Union

from multidict import CIMultiDict

HeadersLike = Union[Mapping[str, str], Iterable[Tuple[str, str]], None]


def make_headers(headers: HeadersLike = None) -> CIMultiDict:
    """Copy any mapping, multidict or pair list into a fresh CIMultiDict."""
    if headers is None:
        return CIMultiDict()
    if isinstance(headers, Mapping) and not hasattr(headers, "getall"):
        return CIMultiDict(headers.items())
    if hasattr(headers, "items"):
        return CIMultiDict(headers.items())
    return CIMultiDict(headers)


@dataclass
class HttpRequest:
    """Outbound request handed to a transport."""

    url: str
    method: str = "GET"
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: bytes = b""

    def __post_init__(self):
        if not isinstance(self.headers, CIMultiDict):
            self.headers = make_headers(self.headers)


@dataclass
class HttpResponse:
    """Response produced by a transport or rebuilt by the pipeline."""

    status: int
    headers: CIMultiDict = field(default_factory=CIMultiDict)
    body: bytes = b""

    def __post_init__(self):
        if not isinstance(self.headers, CIMultiDict):
            self.headers = make_headers(self.headers)

    @property
    def is_success(self) -> bool:
        return 200 <= self.status <= 299

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, or None when absent or unparseable."""
        value = self.headers.get("Content-Length")
        if value is None:
            return None
        value = value.strip()
        # str.isdigit() also accepts superscripts and non-Latin digits
        if not (value.isascii() and value.isdigit()):
            return None
        return int(value)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type header exactly as sent, parameters included."""
        return self.headers.get("Content-Type")
