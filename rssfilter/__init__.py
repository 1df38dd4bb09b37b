"""
rssfilter - RSS/Atom Feed Filtering Proxy
=========================================

Fetches an upstream feed, drops the items whose title, GUID or link match
any of the supplied regular expressions and returns the feed otherwise
untouched.

Main Components:
- Transport: pluggable outbound HTTP (aiohttp, edge platform fetch, scripted)
- Response Guard: declared size ceiling and content-type allow-list
- Feed Filter Engine: lxml based parse, filter and re-serialize
- Filter Pipeline: fetch, guard, filter and rebuild the response
- Front-ends: click CLI, aiohttp server, cloud function handler
"""

__version__ = "0.4.0"
__author__ = "rssfilter developers"
__url__ = "https://github.com/rssfilter/rssfilter"
__description__ = "Filtering proxy for RSS and Atom feeds"

from .config.settings import get_settings
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import RssFilterError
from .processing.feed_filter import FilterSpec
from .processing.pipeline import FilterPipeline

__all__ = [
    "get_settings",
    "configure_application_logging",
    "get_logger_for_component",
    "RssFilterError",
    "FilterSpec",
    "FilterPipeline",
]
