"""
Integration Tests for the Command Line
======================================

Runs the click commands end to end with the outbound transport replaced by
a scripted one.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from rssfilter.cli import cli, parse_header_options
from rssfilter.transport import FakeError, FakeErrorKind, FakeResponse

from conftest import FEED_URL, build_rss_feed


@pytest.fixture
def runner():
    return CliRunner()


def invoke(runner, transport, *args):
    with patch("rssfilter.processing.pipeline.create_transport", return_value=transport):
        return runner.invoke(cli, list(args), obj={})


class TestFilterCommand:
    """Test `rssfilter filter`."""

    def test_filtered_feed_on_stdout(self, runner, feed_transport, reset_settings):
        result = invoke(runner, feed_transport, "filter", FEED_URL, "-t", "^Test Item 1$")

        assert result.exit_code == 0
        assert "Test Item 2" in result.output
        assert "Test Item 1" not in result.output

    def test_all_filter_kinds(self, runner, fake_transport_factory, reset_settings):
        transport = fake_transport_factory({FEED_URL: FakeResponse.rss(build_rss_feed(("1", "2", "3", "4")))})

        result = invoke(runner, transport, "filter", FEED_URL, "-t", "Item 1", "-g", "^2$", "--link-filter", "test3")

        assert result.exit_code == 0
        assert "Test Item 4" in result.output
        for removed in ("Test Item 1", "Test Item 2", "Test Item 3"):
            assert removed not in result.output

    def test_request_headers(self, runner, feed_transport, settings, reset_settings):
        result = invoke(runner, feed_transport, "filter", FEED_URL, "-t", "x", "-H", "Cookie: session=1")

        assert result.exit_code == 0
        sent = feed_transport.requests[0].headers
        assert sent["Cookie"] == "session=1"
        assert sent["Accept"] == settings.http.accept

    def test_explicit_accept_kept(self, runner, feed_transport, reset_settings):
        invoke(runner, feed_transport, "filter", FEED_URL, "-t", "x", "-H", "accept: application/xml")

        assert feed_transport.requests[0].headers.getall("Accept") == ["application/xml"]

    def test_missing_filters_is_usage_error(self, runner, feed_transport, reset_settings):
        result = invoke(runner, feed_transport, "filter", FEED_URL)

        assert result.exit_code == 2
        assert "At least one of title_filter_regex" in result.output
        assert feed_transport.requests == []

    def test_invalid_regex_is_usage_error(self, runner, feed_transport, reset_settings):
        result = invoke(runner, feed_transport, "filter", FEED_URL, "-g", "[")

        assert result.exit_code == 2
        assert "the regex for guid_filter_regex is invalid" in result.output

    def test_malformed_url(self, runner, feed_transport, reset_settings):
        result = invoke(runner, feed_transport, "filter", "ftp://example.com/rss", "-t", "x")

        assert result.exit_code == 2
        assert "The provided URL is malformed" in result.output

    def test_bad_header_option(self, runner, feed_transport, reset_settings):
        result = invoke(runner, feed_transport, "filter", FEED_URL, "-t", "x", "-H", "no-colon")

        assert result.exit_code == 2
        assert feed_transport.requests == []

    def test_upstream_error_exits_nonzero(self, runner, fake_transport_factory, reset_settings):
        transport = fake_transport_factory({FEED_URL: FakeResponse(status=500, body=b"upstream broke")})

        result = invoke(runner, transport, "filter", FEED_URL, "-t", "x")

        assert result.exit_code == 1
        assert "upstream broke" in result.output
        assert "Upstream returned HTTP 500" in result.output

    def test_wrong_content_type(self, runner, fake_transport_factory, reset_settings):
        transport = fake_transport_factory({FEED_URL: FakeResponse.rss(b"<html/>", content_type="text/html")})

        result = invoke(runner, transport, "filter", FEED_URL, "-t", "x")

        assert result.exit_code == 1
        assert "Invalid content type: text/html" in result.output

    def test_transport_failure(self, runner, fake_transport_factory, reset_settings):
        transport = fake_transport_factory(errors={FEED_URL: FakeError(FakeErrorKind.NETWORK, "connection refused")})

        result = invoke(runner, transport, "filter", FEED_URL, "-t", "x")

        assert result.exit_code == 1
        assert "Failed to fetch feed: connection refused" in result.output


class TestOtherCommands:
    """Test the remaining commands."""

    def test_help_without_command(self, runner):
        result = runner.invoke(cli, [], obj={})

        assert result.exit_code == 0
        assert "filter" in result.output
        assert "check-config" in result.output

    def test_check_config(self, runner, reset_settings):
        result = runner.invoke(cli, ["check-config"], obj={})

        assert result.exit_code == 0
        assert "Configuration is valid" in result.output

    def test_check_config_invalid(self, runner, reset_settings, monkeypatch):
        monkeypatch.setenv("RSSFILTER_LIMITS__MAX_FEED_SIZE", "0")

        result = runner.invoke(cli, ["check-config"], obj={})

        assert result.exit_code == 1
        assert "Configuration error" in result.output

    def test_serve_uses_configured_address(self, runner, reset_settings):
        with patch("rssfilter.handlers.server.run_server") as run_server:
            result = runner.invoke(cli, ["serve", "--port", "9999"], obj={})

        assert result.exit_code == 0
        run_server.assert_called_once()
        assert run_server.call_args.kwargs == {"host": None, "port": 9999}


class TestHeaderOptions:
    """Test parsing of -H options."""

    def test_parse(self):
        assert parse_header_options(("Cookie: a=1", "If-None-Match:  \"v1\" ")) == {
            "Cookie": "a=1",
            "If-None-Match": '"v1"',
        }

    @pytest.mark.parametrize("raw", ["no-colon", ": value"])
    def test_invalid(self, raw):
        import click

        with pytest.raises(click.BadParameter):
            parse_header_options((raw,))
