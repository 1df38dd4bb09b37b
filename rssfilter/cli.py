"""
RSS Filter Command Line
=======================

Usage:
    rssfilter filter URL -t 'REGEX' [-g REGEX] [-l REGEX] [-H 'Name: value']
    rssfilter serve [--host HOST] [--port PORT]
    rssfilter check-config
"""

import asyncio
import sys
from typing import Dict, Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from .config.settings import RssFilterSettings, get_settings
from .http.models import HttpResponse
from .processing.feed_filter import FilterSpec
from .processing.pipeline import FilterPipeline
from .utils.exceptions import RssFilterError, ValidationError
from .utils.logging import configure_logging_from_settings, get_logger_for_component
from .utils.validators import FilterParams, validate_filter_params

console = Console(stderr=True)


def _load_settings(ctx) -> RssFilterSettings:
    try:
        settings = get_settings()
    except RssFilterError as e:
        console.print(f"[bold red]Configuration error: {e.user_message}[/bold red]")
        sys.exit(1)
    configure_logging_from_settings(settings, debug=ctx.obj.get('debug', False))
    return settings


def parse_header_options(values: Tuple[str, ...]) -> Dict[str, str]:
    """Turn ``-H 'Name: value'`` options into a header mapping."""
    headers = {}
    for raw in values:
        name, sep, value = raw.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected 'Name: value', got {raw!r}", param_hint="--header")
        headers[name.strip()] = value.strip()
    return headers


async def _fetch_and_filter(spec: FilterSpec, url: str, headers: Dict[str, str],
                            settings: RssFilterSettings) -> HttpResponse:
    async with FilterPipeline(spec, settings=settings) as pipeline:
        return await pipeline.fetch_and_filter(url, headers)


@click.group(invoke_without_command=True)
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, debug):
    """rssfilter - drop RSS/Atom feed items matching regular expressions."""
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command(name='filter')
@click.argument('url')
@click.option('--title-filter', '-t', 'title_filters', multiple=True, help='Drop items whose title matches REGEX')
@click.option('--guid-filter', '-g', 'guid_filters', multiple=True, help='Drop items whose GUID matches REGEX')
@click.option('--link-filter', '-l', 'link_filters', multiple=True, help='Drop items whose link matches REGEX')
@click.option('--header', '-H', 'header_values', multiple=True, help="Request header, 'Name: value'")
@click.pass_context
def filter_command(ctx, url, title_filters, guid_filters, link_filters, header_values):
    """Fetch URL and print the filtered feed to stdout."""
    try:
        params = validate_filter_params(FilterParams(
            url=url,
            title_patterns=list(title_filters),
            guid_patterns=list(guid_filters),
            link_patterns=list(link_filters),
        ))
        spec = FilterSpec.from_strings(
            title=params.title_patterns,
            guid=params.guid_patterns,
            link=params.link_patterns,
        )
    except ValidationError as e:
        raise click.UsageError(e.user_message, ctx=ctx)

    headers = parse_header_options(header_values)
    settings = _load_settings(ctx)
    logger = get_logger_for_component('cli', feed_url=params.url)

    if not any(name.lower() == 'accept' for name in headers):
        headers['Accept'] = settings.http.accept

    try:
        response = asyncio.run(_fetch_and_filter(spec, params.url, headers, settings))
    except RssFilterError as e:
        logger.debug(f"Filtering failed: {e}")
        console.print(f"[bold red]{e.user_message}[/bold red]")
        sys.exit(1)

    click.get_binary_stream('stdout').write(response.body)

    if not response.is_success:
        click.echo(f"Upstream returned HTTP {response.status}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--host', default=None, help='Bind address (default from config)')
@click.option('--port', type=int, default=None, help='Bind port (default from config)')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Run the filter as an HTTP service."""
    from .handlers.server import run_server

    settings = _load_settings(ctx)
    console.print(
        f"[bold blue]Serving feed filter on "
        f"http://{host or settings.server.host}:{port or settings.server.port}/[/bold blue]"
    )
    run_server(settings, host=host, port=port)


@cli.command()
@click.pass_context
def check_config(ctx):
    """Validate configuration and show the effective values."""
    try:
        settings = get_settings()
    except RssFilterError as e:
        console.print(f"[bold red]Configuration error: {e.user_message}[/bold red]")
        sys.exit(1)

    table = Table(title="rssfilter configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    rows = [
        ("transport.backend", settings.transport.backend.value),
        ("limits.max_feed_size", f"{settings.limits.max_feed_size} bytes"),
        ("limits.request_timeout", f"{settings.limits.request_timeout}s"),
        ("cache.status_header_name", settings.cache.status_header_name),
        ("cache.ttl_seconds", str(settings.cache.ttl_seconds)),
        ("cache.cache_key_prefix", settings.cache.cache_key_prefix),
        ("http.user_agent", settings.http.user_agent),
        ("server", f"{settings.server.host}:{settings.server.port}"),
        ("logging.level", settings.get_effective_log_level()),
        ("logging.file_path", settings.logging.file_path or "-"),
    ]
    for name, value in rows:
        table.add_row(name, value)

    Console().print(table)
    console.print("[bold green]Configuration is valid[/bold green]")


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
