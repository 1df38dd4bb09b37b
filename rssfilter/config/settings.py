"""
RSS Filter Configuration System
===============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

import re
from pathlib import Path
from typing import Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from .. import __version__, __url__
from ..utils.exceptions import ConfigurationError, ErrorCode

# RFC 7230 token characters
_HEADER_TOKEN = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")

RSS_ACCEPT = (
    "application/rss+xml, application/rdf+xml;q=0.8, application/atom+xml;q=0.6, "
    "application/xml;q=0.4, text/xml;q=0.4"
)

DEFAULT_USER_AGENT = f"rssfilter/{__version__} (+{__url__})"


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TransportBackend(str, Enum):
    """Outbound HTTP backends."""
    AIOHTTP = "aiohttp"
    PLATFORM_FETCH = "platform_fetch"


class LimitsSettings(BaseModel):
    """Resource protection settings."""
    max_feed_size: int = Field(default=10 * 1024 * 1024, ge=1, description="Largest declared Content-Length accepted, in bytes")
    request_timeout: int = Field(default=30, ge=1, le=300, description="Upstream request timeout in seconds")


class CacheSettings(BaseModel):
    """Cache metadata shared by all transports."""
    ttl_seconds: int = Field(default=300, ge=0, description="Edge cache TTL for successful responses")
    cache_key_prefix: str = Field(default="http-cache", min_length=1, description="Prefix of platform cache keys")
    status_header_name: str = Field(default="x-rssfilter-cache-status", description="Response header reporting the cache status")

    @field_validator('status_header_name')
    @classmethod
    def validate_header_name(cls, v):
        """Ensure the cache status header can be sent on the wire."""
        if not _HEADER_TOKEN.match(v):
            raise ValueError(f"Invalid header name: {v!r}")
        return v.lower()


class HttpSettings(BaseModel):
    """Outbound request defaults."""
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent forced on upstream requests")
    accept: str = Field(default=RSS_ACCEPT, description="Accept header forced on proxied requests")


class TransportSettings(BaseModel):
    """Transport backend selection."""
    backend: TransportBackend = Field(default=TransportBackend.AIOHTTP, description="Backend used by create_transport()")


class ServerSettings(BaseModel):
    """Embedded aiohttp server configuration."""
    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default=None, description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")


class RssFilterSettings(BaseSettings):
    """Main application settings."""

    limits: LimitsSettings = Field(default_factory=LimitsSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    transport: TransportSettings = Field(default_factory=TransportSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="rssfilter", description="Application name")
    version: str = Field(default=__version__, description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "RSSFILTER_",
        "frozen": True,
    }

    def validate_configuration(self) -> None:
        """Validate cross-field configuration."""
        errors = []

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> RssFilterSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env, then Field defaults
        settings = RssFilterSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        ) from e


# Global settings instance
_settings: Optional[RssFilterSettings] = None


def get_settings(reload: bool = False) -> RssFilterSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
