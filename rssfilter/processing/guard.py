"""
Response Guard
==============

Checks a fetched response before its body is trusted: a ceiling on the
declared Content-Length and an exact-match allow-list of feed content types.
"""

from typing import FrozenSet, Iterable, Optional

from ..http.models import HttpResponse
from ..utils.exceptions import FeedTooLargeError, InvalidContentTypeError

MAX_RSS_SIZE = 10 * 1024 * 1024

RSS_MIME_TYPES = frozenset({
    "application/rss+xml",
    "application/atom+xml",
    "text/xml",
    "application/xml",
})

# Reported when the upstream sent no Content-Type at all
NO_CONTENT_TYPE = "<none>"


class ResponseGuard:
    """Size and content-type validation for upstream responses."""

    def __init__(self, max_size: int = MAX_RSS_SIZE, allowed_types: Optional[Iterable[str]] = None):
        self.max_size = max_size
        self.allowed_types: FrozenSet[str] = (
            frozenset(allowed_types) if allowed_types is not None else RSS_MIME_TYPES
        )

    def check_size(self, response: HttpResponse, url: Optional[str] = None) -> None:
        """Reject a declared Content-Length above the ceiling.

        A response without a usable Content-Length passes; this is not a
        byte counter.

        Raises:
            FeedTooLargeError: If the declared length exceeds ``max_size``
        """
        declared = response.content_length
        if declared is not None and declared > self.max_size:
            raise FeedTooLargeError(self.max_size, declared_size=declared, feed_url=url)

    def check_content_type(self, response: HttpResponse, url: Optional[str] = None) -> str:
        """Require a Content-Type header equal to one of ``allowed_types``.

        The comparison is on the whole header value, so a charset parameter
        or surrounding whitespace makes the type unacceptable.

        Returns:
            The accepted content type

        Raises:
            InvalidContentTypeError: If the type is missing or not allowed
        """
        content_type = response.content_type
        if content_type is None:
            raise InvalidContentTypeError(NO_CONTENT_TYPE, feed_url=url)
        if content_type not in self.allowed_types:
            raise InvalidContentTypeError(content_type, feed_url=url)
        return content_type

    def validate(self, response: HttpResponse, url: Optional[str] = None) -> None:
        """Run both checks; the content type only matters for 2xx responses."""
        self.check_size(response, url)
        if response.is_success:
            self.check_content_type(response, url)
