"""
Cloud Function Entry Point
==========================

Handler for function-URL (payload format 2.0) events. Each invocation runs
its own event loop, so the outbound transport is created and closed per
invocation.
"""

import asyncio
import base64
from typing import Any, Dict, Optional

from multidict import CIMultiDict

from ..config.settings import get_settings
from ..http.headers import strip_framing_headers
from ..http.models import HttpResponse
from ..transport import Transport, create_transport
from ..utils.logging import configure_logging_from_settings
from .request import FeedRequestHandler

_logging_configured = False


def _configure_logging() -> None:
    global _logging_configured
    if not _logging_configured:
        configure_logging_from_settings(get_settings())
        _logging_configured = True


def to_function_url_response(response: HttpResponse) -> Dict[str, Any]:
    """Convert a response into the function-URL result shape.

    ``Set-Cookie`` values go to ``cookies``; other repeated headers are
    comma joined. Bodies that are not UTF-8 are base64 encoded.
    """
    headers: Dict[str, str] = {}
    cookies = []
    for name, value in strip_framing_headers(response.headers).items():
        lowered = name.lower()
        if lowered == "set-cookie":
            cookies.append(value)
        elif lowered in headers:
            headers[lowered] = f"{headers[lowered]}, {value}"
        else:
            headers[lowered] = value

    try:
        body = response.body.decode("utf-8")
        is_base64 = False
    except UnicodeDecodeError:
        body = base64.b64encode(response.body).decode("ascii")
        is_base64 = True

    return {
        "statusCode": response.status,
        "headers": headers,
        "body": body,
        "isBase64Encoded": is_base64,
        "cookies": cookies,
    }


async def handle_event(
    event: Dict[str, Any],
    context: Any = None,
    transport: Optional[Transport] = None,
) -> Dict[str, Any]:
    """Handle one function-URL event on the running loop."""
    settings = get_settings()
    http_context = event.get("requestContext", {}).get("http", {})

    method = http_context.get("method", "GET")
    path = event.get("rawPath") or http_context.get("path") or "/"
    query_string = event.get("rawQueryString", "")

    headers = CIMultiDict(event.get("headers") or {})
    if event.get("cookies"):
        headers["Cookie"] = "; ".join(event["cookies"])

    request_id = getattr(context, "aws_request_id", None) or event.get("requestContext", {}).get("requestId")

    owns_transport = transport is None
    transport = transport or create_transport(settings)
    try:
        handler = FeedRequestHandler(settings=settings, transport=transport)
        response = await handler.handle(method, path, query_string, headers, request_id=request_id)
    finally:
        if owns_transport:
            await transport.close()

    return to_function_url_response(response)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Function entry point."""
    _configure_logging()
    return asyncio.run(handle_event(event, context))
