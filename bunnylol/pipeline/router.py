"""Request routing logic."""

import logging

from bunnylol.domain.correlation_id import get_logger
from bunnylol.domain.http_types import HttpRequest, HttpResponse
from bunnylol.handlers.command_handler import handle_command
from bunnylol.handlers.system_handlers import handle_health, handle_landing_page
from bunnylol.transport.context import WorkerContext

ROUTER_LOGGER = get_logger("pipeline.router")

HEALTH_PATHS = {"/health", "/healthz"}


def _log_match(route: str) -> None:
    if ROUTER_LOGGER.logger.isEnabledFor(logging.DEBUG):
        ROUTER_LOGGER.debug(
            "Route matched", extra={"event": "route_matched", "route": route}
        )


def route_request(
    request: HttpRequest, context: WorkerContext, client_ip: str
) -> HttpResponse:
    """Route the request to the appropriate handler and return a response."""
    if request.path == "/":
        query = request.query_param("cmd")
        if query is not None:
            _log_match("/?cmd")
            return handle_command(query, request, context, client_ip)
        _log_match("/")
        return handle_landing_page(request, context.landing_page)

    if request.path in HEALTH_PATHS:
        _log_match(request.path)
        return handle_health(request, context.lifecycle)

    ROUTER_LOGGER.info(
        "No matching route found",
        extra={
            "event": "route_not_found",
            "route": request.path,
            "method": request.method,
        },
    )
    return handle_landing_page(request, context.landing_page, not_found=True)
