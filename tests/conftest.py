"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for rssfilter tests: sample feeds in each
supported dialect, settings and scripted transports.
"""

import pytest
import os
import sys
from pathlib import Path
from typing import Iterable, Optional

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
os.environ["RSSFILTER_LOGGING__LEVEL"] = "DEBUG"
os.environ["RSSFILTER_LOGGING__CONSOLE_LOGGING"] = "false"
os.environ.pop("RSSFILTER_TRANSPORT__BACKEND", None)


FEED_URL = "http://feeds.example.com/rss"


# ============================================================================
# Sample Feeds
# ============================================================================


def build_rss_feed(items: Iterable[str] = ("1", "2"), title: str = "Test RSS Feed") -> bytes:
    """RSS 2.0 feed with one item per id: "Test Item {id}", link ".../test{id}", guid "{id}"."""
    entries = "".join(
        f"<item>"
        f"<title>Test Item {i}</title>"
        f"<link>http://www.example.com/test{i}</link>"
        f"<guid>{i}</guid>"
        f"</item>"
        for i in items
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<rss version="2.0">'
        "<channel>"
        f"<title>{title}</title>"
        "<link>http://www.example.com/</link>"
        "<description>This is a test RSS feed</description>"
        f"{entries}"
        "</channel>"
        "</rss>"
    ).encode("utf-8")


def build_atom_feed(items: Iterable[str] = ("1", "2")) -> bytes:
    entries = "".join(
        f"<entry>"
        f"<title>Test Item {i}</title>"
        f'<link rel="alternate" href="http://www.example.com/test{i}"/>'
        f"<id>urn:test:{i}</id>"
        f"<updated>2024-01-0{i}T00:00:00Z</updated>"
        f"</entry>"
        for i in items
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        "<title>Test Atom Feed</title>"
        '<link rel="self" href="http://www.example.com/atom"/>'
        '<link href="http://www.example.com/"/>'
        "<id>urn:test:feed</id>"
        "<updated>2024-01-01T00:00:00Z</updated>"
        f"{entries}"
        "</feed>"
    ).encode("utf-8")


def build_rdf_feed(items: Iterable[str] = ("1", "2")) -> bytes:
    items = list(items)
    sequence = "".join(
        f'<rdf:li rdf:resource="http://www.example.com/test{i}"/>' for i in items
    )
    entries = "".join(
        f'<item rdf:about="http://www.example.com/test{i}">'
        f"<title>Test Item {i}</title>"
        f"<link>http://www.example.com/test{i}</link>"
        f"</item>"
        for i in items
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#" '
        'xmlns="http://purl.org/rss/1.0/">'
        '<channel rdf:about="http://www.example.com/">'
        "<title>Test RDF Feed</title>"
        "<link>http://www.example.com/</link>"
        "<description>This is a test RDF feed</description>"
        f"<items><rdf:Seq>{sequence}</rdf:Seq></items>"
        "</channel>"
        f"{entries}"
        "</rdf:RDF>"
    ).encode("utf-8")


@pytest.fixture
def rss_feed():
    """Two item RSS 2.0 feed."""
    return build_rss_feed()


@pytest.fixture
def atom_feed():
    return build_atom_feed()


@pytest.fixture
def rdf_feed():
    return build_rdf_feed()


# ============================================================================
# Settings and Transports
# ============================================================================


@pytest.fixture
def settings():
    """Fresh settings built from the test environment."""
    from rssfilter.config.settings import RssFilterSettings

    return RssFilterSettings()


@pytest.fixture
def reset_settings():
    """Drop the global settings singleton around a test."""
    import rssfilter.config.settings as settings_module

    settings_module._settings = None
    yield
    settings_module._settings = None


@pytest.fixture
def fake_transport_factory(settings):
    """Build a FakeTransport serving the given URL table."""
    from rssfilter.transport import FakeTransport, FakeTransportConfig

    def factory(responses: Optional[dict] = None, errors: Optional[dict] = None,
                cache_status: str = "MISS") -> FakeTransport:
        config = FakeTransportConfig(
            responses=dict(responses or {}),
            errors=dict(errors or {}),
            cache_status=cache_status,
        )
        return FakeTransport(config, status_header_name=settings.cache.status_header_name)

    return factory


@pytest.fixture
def feed_transport(fake_transport_factory, rss_feed):
    """FakeTransport serving the two item RSS feed at FEED_URL."""
    from rssfilter.transport import FakeResponse

    return fake_transport_factory({FEED_URL: FakeResponse.rss(rss_feed)})
