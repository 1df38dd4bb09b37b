"""
RSS Filter Logging Configuration
================================

Logging for the CLI, the embedded server and the cloud function. Records
are plain ``logging`` records; the request context (component, request id,
feed URL) travels in ``extra`` and is lifted to top-level JSON keys by the
structured formatter.

Console output goes to stderr: the CLI writes the filtered feed to stdout.
"""

import json
import logging
import logging.handlers
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

# Keys carried by every adapter-produced record
CONTEXT_FIELDS = ("component", "request_id", "feed_url")

# Attributes every LogRecord has, whatever the interpreter version
_STANDARD_ATTRS = frozenset(
    logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__
) | {"message", "asctime"}

_NOISY_LOGGERS = ("aiohttp.access", "aiohttp.client", "aiohttp.server", "asyncio")


def _record_extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _STANDARD_ATTRS and key not in CONTEXT_FIELDS
    }


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, for log shippers and cloud function logs."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_data[key] = value

        extra = _record_extras(record)
        if extra:
            log_data["extra"] = extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Compact coloured lines for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        source = getattr(record, "component", None) or record.name

        line = f"{color}{timestamp} {record.levelname:<8}{self.RESET} {source}: {record.getMessage()}"

        request_id = getattr(record, "request_id", None)
        if request_id:
            line += f" [{request_id}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logger(
    name: str = "rssfilter",
    level: str = "INFO",
    log_file: Optional[str] = None,
    console: bool = True,
    structured: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Install handlers on the named logger, replacing any it already has.

    Args:
        name: Logger name
        level: Logging level name
        log_file: Rotating JSON log file (optional)
        console: Log to stderr
        structured: JSON instead of coloured text on stderr
        max_file_size: Rotation size in bytes
        backup_count: Rotated files kept

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(level.upper())

    # Warm cloud function starts call this again
    logger.handlers.clear()

    if console:
        stream = logging.StreamHandler(sys.stderr)
        stream.setFormatter(StructuredFormatter() if structured else ColoredConsoleFormatter())
        logger.addHandler(stream)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(StructuredFormatter())
        logger.addHandler(rotating)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter stamping a fixed context onto every record.

    Per-call ``extra`` wins over the bound context.
    """

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "LoggerAdapter":
        """Return a new adapter carrying additional context."""
        return LoggerAdapter(self.logger, {**self.extra, **context})


def get_logger_for_component(
    component_name: str,
    request_id: Optional[str] = None,
    feed_url: Optional[str] = None,
) -> LoggerAdapter:
    """Logger ``rssfilter.<component_name>`` with the request context bound.

    Args:
        component_name: e.g. 'transport', 'pipeline', 'handler'
        request_id: Identifier of the request being served
        feed_url: Upstream feed URL
    """
    context: Dict[str, Any] = {"component": component_name}
    if request_id:
        context["request_id"] = request_id
    if feed_url:
        context["feed_url"] = feed_url

    return LoggerAdapter(logging.getLogger(f"rssfilter.{component_name}"), context)


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size_mb: int = 10,
    backup_count: int = 5,
) -> None:
    """Configure the ``rssfilter`` logger tree and quieten library loggers."""
    setup_logger(
        name="rssfilter",
        level=log_level,
        log_file=log_file,
        console=enable_console,
        structured=structured_logging,
        max_file_size=max_file_size_mb * 1024 * 1024,
        backup_count=backup_count,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def configure_logging_from_settings(settings, debug: bool = False) -> None:
    """Configure logging from a loaded settings object."""
    configure_application_logging(
        log_level="DEBUG" if debug else settings.get_effective_log_level(),
        log_file=settings.logging.file_path,
        enable_console=settings.logging.console_logging,
        structured_logging=settings.logging.structured_logging,
        max_file_size_mb=settings.logging.max_file_size_mb,
        backup_count=settings.logging.backup_count,
    )


class PerformanceLogger:
    """Time a block and log its outcome with ``duration_ms`` and ``success``.

    Fields learned inside the block can be attached with ``add_context``::

        with PerformanceLogger(logger, "feed request", url=url) as perf:
            response = await handle()
            perf.add_context(status=response.status)
    """

    def __init__(self, logger: logging.Logger, operation: str, **context: Any):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration_ms: Optional[int] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.perf_counter()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def add_context(self, **context: Any) -> None:
        self.context.update(context)

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._started is None:
            return
        self.duration_ms = int((time.perf_counter() - self._started) * 1000)
        extra = {**self.context, "duration_ms": self.duration_ms, "success": exc_type is None}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration_ms}ms", extra=extra)
        else:
            self.logger.error(f"Failed {self.operation} in {self.duration_ms}ms: {exc_val}", extra=extra)
