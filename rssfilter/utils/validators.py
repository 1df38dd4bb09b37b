"""
RSS Filter Input Validators
===========================

Validation for the caller-supplied feed URL and the filter regular
expressions before anything is sent upstream.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Pattern, Tuple
from urllib.parse import urlparse

from .exceptions import ValidationError, ErrorCode

TITLE_FILTER_PARAM = "title_filter_regex"
GUID_FILTER_PARAM = "guid_filter_regex"
LINK_FILTER_PARAM = "link_filter_regex"
URL_PARAM = "url"

FILTER_PARAMS = (TITLE_FILTER_PARAM, GUID_FILTER_PARAM, LINK_FILTER_PARAM)

_FILTER_NAMES = f"{TITLE_FILTER_PARAM}, {GUID_FILTER_PARAM}, or {LINK_FILTER_PARAM}"


class URLValidator:
    """URL validation utilities."""

    # Schemes a transport can fetch
    ALLOWED_SCHEMES = {'http', 'https'}

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate an upstream feed URL.

        The URL is returned stripped but otherwise untouched; upstreams may
        care about path case or trailing slashes.

        Raises:
            ValidationError: If URL is missing or malformed
        """
        if not url or not isinstance(url, str) or not url.strip():
            raise ValidationError(
                "A URL must be provided",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name=URL_PARAM
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
            # Accessing port validates it
            parsed.port
        except ValueError as e:
            raise cls._malformed(str(e)) from e

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise cls._malformed(f"unsupported scheme {parsed.scheme or '<none>'!r}")

        if not parsed.hostname:
            raise cls._malformed("missing host")

        return url

    @staticmethod
    def _malformed(reason: str) -> ValidationError:
        return ValidationError(
            f"The provided URL is malformed: {reason}",
            error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
            field_name=URL_PARAM
        )


class RegexValidator:
    """Compilation of user-supplied filter expressions."""

    @staticmethod
    def compile(pattern: str, field_name: str) -> Pattern:
        """Compile one filter expression.

        Raises:
            ValidationError: If the expression is not a valid regex
        """
        try:
            return re.compile(pattern)
        except re.error as e:
            raise ValidationError(
                f"the regex for {field_name} is invalid: {e}",
                error_code=ErrorCode.VALIDATION_INVALID_REGEX,
                field_name=field_name
            ) from e

    @classmethod
    def compile_all(cls, patterns: Iterable[str], field_name: str) -> Tuple[Pattern, ...]:
        return tuple(cls.compile(p, field_name) for p in patterns)


@dataclass
class FilterParams:
    """Raw filter request: a URL plus the three repeatable regex parameters."""

    url: Optional[str] = None
    title_patterns: List[str] = field(default_factory=list)
    guid_patterns: List[str] = field(default_factory=list)
    link_patterns: List[str] = field(default_factory=list)

    @property
    def has_filters(self) -> bool:
        return bool(self.title_patterns or self.guid_patterns or self.link_patterns)


def validate_filter_params(params: FilterParams) -> FilterParams:
    """Check presence of the URL and filters, then the URL's shape.

    Empty parameter values are dropped first, so ``?title_filter_regex=``
    counts as missing.

    Raises:
        ValidationError: With the first problem found
    """
    cleaned = FilterParams(
        url=params.url.strip() if params.url else None,
        title_patterns=[p for p in params.title_patterns if p],
        guid_patterns=[p for p in params.guid_patterns if p],
        link_patterns=[p for p in params.link_patterns if p],
    )

    if not cleaned.url and not cleaned.has_filters:
        raise ValidationError(
            f"A url and at least one of {_FILTER_NAMES} must be provided",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
        )
    if not cleaned.has_filters:
        raise ValidationError(
            f"At least one of {_FILTER_NAMES} must be provided",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
        )

    cleaned.url = URLValidator.validate_feed_url(cleaned.url)
    return cleaned
