"""Redirects ``/?cmd=<query>`` to the URL the query resolves to."""

import urllib.parse

from bunnylol.bootstrap.config import SECURITY_HEADERS
from bunnylol.domain.correlation_id import get_logger
from bunnylol.domain.history import record_command
from bunnylol.domain.http_types import HttpRequest, HttpResponse
from bunnylol.domain.response_builders import redirect_response
from bunnylol.transport.context import WorkerContext

COMMAND_LOGGER = get_logger("handlers.command")

# Reserved and already-escaped characters stay as they are; anything
# non-ASCII or unsafe in a header value gets percent-encoded.
_LOCATION_SAFE = ":/?#[]@!$&'()*+,;=%"


def location_header_value(url: str) -> str:
    return urllib.parse.quote(url, safe=_LOCATION_SAFE)


def handle_command(
    query: str,
    request: HttpRequest,
    context: WorkerContext,
    client_ip: str,
) -> HttpResponse:
    """Resolve the query, record it in history and redirect."""
    resolution = context.registry.resolve(query)
    record_command(context.history, query, client_ip)
    COMMAND_LOGGER.info(
        "Redirecting command",
        extra={
            "event": "command_redirect",
            "binding": resolution.command,
            "fallback": resolution.fallback,
            "redirect_url": resolution.url,
        },
    )
    return redirect_response(
        location_header_value(resolution.url), request, SECURITY_HEADERS
    )
