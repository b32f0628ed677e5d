"""Request validation utilities."""

from typing import Optional

from bunnylol.domain.http_types import HttpRequest, HttpResponse
from bunnylol.domain.response_builders import (
    bad_request_response,
    method_not_allowed_response,
)


class RequestEntityTooLarge(Exception):
    """Raised when a request exceeds the configured size limit."""


def enforce_allowed_method(
    request: HttpRequest,
    allowed_methods: set[str],
    security_headers: dict[str, str],
) -> Optional[HttpResponse]:
    """Ensure the HTTP method is part of the supported allowlist."""
    if request.method in allowed_methods:
        return None
    return method_not_allowed_response(request, security_headers, allowed_methods)


def enforce_well_formed_path(
    request: HttpRequest, security_headers: dict[str, str]
) -> Optional[HttpResponse]:
    """Reject origin-form violations and embedded NUL bytes."""
    if not request.path.startswith("/") or "\x00" in request.path:
        return bad_request_response(request, security_headers)
    return None


def validate_request(
    request: HttpRequest,
    allowed_methods: set[str],
    security_headers: dict[str, str],
) -> Optional[HttpResponse]:
    """Return an error response when the request fails validation checks."""
    method_error = enforce_allowed_method(request, allowed_methods, security_headers)
    if method_error is not None:
        return method_error
    return enforce_well_formed_path(request, security_headers)
