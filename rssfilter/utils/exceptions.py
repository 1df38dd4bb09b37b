"""
RSS Filter Custom Exceptions
============================

Exception hierarchy for the feed filtering proxy. Every error carries an
``ErrorCode``, a context dict for structured logs and a ``user_message``
that front-ends may return to the caller verbatim.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Transport errors (T001-T099)
    TRANSPORT_NETWORK = "T001"
    TRANSPORT_TIMEOUT = "T002"
    TRANSPORT_UNSUPPORTED_METHOD = "T003"
    TRANSPORT_HEADER_ENCODING = "T004"
    TRANSPORT_BODY = "T005"

    # Feed errors (F001-F099)
    FEED_TOO_LARGE = "F001"
    FEED_INVALID_CONTENT_TYPE = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_SERIALIZATION = "F004"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_INVALID_REGEX = "V003"

    # Unclassified
    UNEXPECTED = "X001"


def _with_fields(context: Optional[Dict[str, Any]], **fields: Any) -> Dict[str, Any]:
    """Copy of ``context`` with the non-None ``fields`` added."""
    merged = dict(context or {})
    merged.update({key: value for key, value in fields.items() if value is not None})
    return merged


class RssFilterError(Exception):
    """Base exception for all rssfilter errors.

    Subclasses set ``default_code`` and, where the caller should see more
    than the raw message, override ``default_user_message``.
    """

    default_code: Optional[ErrorCode] = None

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
    ):
        """Initialize rssfilter error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code (default: the class's code)
            context: Additional context information
            user_message: Message safe to return to the caller
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.context = context or {}
        self.user_message = user_message or self.default_user_message(message)

    @classmethod
    def default_user_message(cls, message: str) -> str:
        return message

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
        }

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code.value}] {self.message}"
        return self.message


class ConfigurationError(RssFilterError):
    """Invalid or incomplete configuration."""

    default_code = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, config_key: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, context=_with_fields(context, config_key=config_key), **kwargs)

    @classmethod
    def default_user_message(cls, message: str) -> str:
        return f"Configuration error: {message}"


class ValidationError(RssFilterError):
    """Request parameter validation errors. The message is shown as is."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def __init__(self, message: str, field_name: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, context=_with_fields(context, field_name=field_name), **kwargs)
        self.field_name = field_name


# Transport errors


class TransportError(RssFilterError):
    """Failure while sending a request upstream. Never retried."""

    default_code = ErrorCode.TRANSPORT_NETWORK

    def __init__(self, message: str, url: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, context=_with_fields(context, url=url), **kwargs)
        self.url = url

    @classmethod
    def default_user_message(cls, message: str) -> str:
        return f"Failed to fetch feed: {message}"


class NetworkError(TransportError):
    """Connection, DNS, TLS or protocol failure."""


class FetchTimeoutError(TransportError):
    """The upstream did not answer in time."""

    default_code = ErrorCode.TRANSPORT_TIMEOUT


class UnsupportedMethodError(TransportError):
    """The transport cannot issue requests with this HTTP method."""

    default_code = ErrorCode.TRANSPORT_UNSUPPORTED_METHOD

    def __init__(self, method: str, context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(f"Unsupported method: {method}", context=_with_fields(context, method=method), **kwargs)
        self.method = method


class HeaderEncodingError(TransportError):
    """A header name or value cannot be put on the wire."""

    default_code = ErrorCode.TRANSPORT_HEADER_ENCODING

    def __init__(self, message: str, header_name: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, context=_with_fields(context, header_name=header_name), **kwargs)
        self.header_name = header_name


class ResponseBodyError(TransportError):
    """The response body could not be read or decoded."""

    default_code = ErrorCode.TRANSPORT_BODY


# Feed errors


class FeedError(RssFilterError):
    """Errors raised while validating, parsing or re-serializing a feed."""

    default_code = ErrorCode.FEED_PARSE_ERROR

    def __init__(self, message: str, feed_url: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(message, context=_with_fields(context, feed_url=feed_url), **kwargs)


class FeedTooLargeError(FeedError):
    """The upstream declared a body larger than the configured ceiling."""

    default_code = ErrorCode.FEED_TOO_LARGE

    def __init__(self, max_size: int, declared_size: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(
            f"RSS feed is too large (max {max_size} bytes)",
            context=_with_fields(context, max_size=max_size, declared_size=declared_size),
            **kwargs,
        )
        self.max_size = max_size
        self.declared_size = declared_size


class InvalidContentTypeError(FeedError):
    """The upstream answered with a content type that is not a feed."""

    default_code = ErrorCode.FEED_INVALID_CONTENT_TYPE

    def __init__(self, content_type: str, context: Optional[Dict[str, Any]] = None, **kwargs):
        super().__init__(
            f"Invalid content type: {content_type}. Expected XML or RSS content",
            context=_with_fields(context, content_type=content_type),
            **kwargs,
        )
        self.content_type = content_type


class FeedParseError(FeedError):
    """The body is not well-formed feed XML."""


class FeedSerializationError(FeedError):
    """The filtered feed could not be written back out."""

    default_code = ErrorCode.FEED_SERIALIZATION


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> RssFilterError:
    """Log an exception and return it as an ``RssFilterError``.

    rssfilter errors are logged and returned unchanged. Timeouts and
    connection errors become transport errors; anything else becomes an
    ``UNEXPECTED`` error whose user message hides the details.

    Args:
        exception: Original exception
        logger: Logger (or adapter) for the error record
        operation: Operation that was being performed
        context: Additional context information
    """
    if isinstance(exception, RssFilterError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    context = _with_fields(
        context,
        operation=operation,
        original_exception_type=type(exception).__name__,
    )

    if isinstance(exception, TimeoutError):
        error: RssFilterError = FetchTimeoutError(f"Timeout during {operation}: {exception}", context=context)
    elif isinstance(exception, ConnectionError):
        error = NetworkError(f"Network error during {operation}: {exception}", context=context)
    else:
        error = RssFilterError(
            f"Unexpected error during {operation}: {exception}",
            error_code=ErrorCode.UNEXPECTED,
            context=context,
            user_message="An unexpected error occurred",
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict(), exc_info=exception)
    return error
