"""Health check and landing page handlers."""

from typing import Optional

from bunnylol.bootstrap.config import SECURITY_HEADERS
from bunnylol.domain.correlation_id import get_logger
from bunnylol.domain.http_types import HttpRequest, HttpResponse
from bunnylol.domain.response_builders import health_response, html_response
from bunnylol.handlers.landing_page import LandingPage
from bunnylol.lifecycle.state import ServerLifecycle

SYSTEM_LOGGER = get_logger("handlers.system")


def handle_health(
    request: HttpRequest, lifecycle: Optional[ServerLifecycle]
) -> HttpResponse:
    is_draining = lifecycle.is_draining() if lifecycle is not None else False
    SYSTEM_LOGGER.debug(
        "Health check performed",
        extra={"event": "health_check", "draining": is_draining},
    )
    return health_response(is_draining, request, SECURITY_HEADERS)


def handle_landing_page(
    request: HttpRequest, landing_page: LandingPage, not_found: bool = False
) -> HttpResponse:
    """Serve the bindings page, with a 404 status for unknown routes."""
    status_line = "HTTP/1.1 404 Not Found" if not_found else "HTTP/1.1 200 OK"
    return html_response(status_line, landing_page.html(), request, SECURITY_HEADERS)
