"""Pure HTTP response builders."""

import gzip
from typing import Optional, Tuple

from bunnylol.domain.http_types import HttpRequest, HttpResponse, should_close

HTML_CONTENT_TYPE = "text/html; charset=utf-8"
TEXT_CONTENT_TYPE = "text/plain; charset=utf-8"


def accepts_gzip(headers: dict[str, str]) -> bool:
    """Return True when the Accept-Encoding header includes gzip with q>0."""
    for token in headers.get("accept-encoding", "").split(","):
        algorithm, _, params = token.strip().partition(";")
        if algorithm.strip().lower() != "gzip":
            continue
        quality = 1.0
        for param in params.split(";"):
            key, _, raw_value = param.strip().partition("=")
            if key.lower() == "q" and raw_value:
                try:
                    quality = float(raw_value)
                except ValueError:
                    quality = 0.0
                break
        if quality > 0:
            return True
    return False


def compress_if_gzip_supported(
    payload: bytes, headers: dict[str, str]
) -> Tuple[bytes, dict[str, str]]:
    """Compress the payload when the request advertises gzip support."""
    if not accepts_gzip(headers):
        return payload, {}
    return gzip.compress(payload), {"Content-Encoding": "gzip", "Vary": "Accept-Encoding"}


def _close_for(request: Optional[HttpRequest]) -> bool:
    return should_close(request.headers) if request is not None else True


def _for_method(response: HttpResponse, request: Optional[HttpRequest]) -> HttpResponse:
    if request is not None and request.method == "HEAD":
        response.omit_body = True
    return response


def html_response(
    status_line: str,
    html: str,
    request: HttpRequest,
    security_headers: dict[str, str],
) -> HttpResponse:
    """Return an HTML page, gzip-compressed when the client accepts it."""
    payload, encoding_headers = compress_if_gzip_supported(
        html.encode("utf-8"), request.headers
    )
    headers = {"Content-Type": HTML_CONTENT_TYPE, **encoding_headers, **security_headers}
    return _for_method(
        HttpResponse(status_line, headers, payload, should_close(request.headers)),
        request,
    )


def text_response(
    status_line: str,
    message: str,
    request: HttpRequest,
    security_headers: dict[str, str],
) -> HttpResponse:
    headers = {"Content-Type": TEXT_CONTENT_TYPE, **security_headers}
    return _for_method(
        HttpResponse(
            status_line, headers, message.encode("utf-8"), should_close(request.headers)
        ),
        request,
    )


def redirect_response(
    location: str, request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 303 See Other pointing the browser at ``location``."""
    headers = {"Location": location, "Cache-Control": "no-store", **security_headers}
    return _for_method(
        HttpResponse(
            "HTTP/1.1 303 See Other", headers, b"", should_close(request.headers)
        ),
        request,
    )


def bad_request_response(
    request: Optional[HttpRequest], security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 400 response honoring the caller's connection preference."""
    return _for_method(
        HttpResponse(
            "HTTP/1.1 400 Bad Request",
            security_headers.copy(),
            b"",
            _close_for(request),
        ),
        request,
    )


def entity_too_large_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 413 response that always closes the connection."""
    return HttpResponse(
        "HTTP/1.1 413 Payload Too Large", security_headers.copy(), b"", True
    )


def method_not_allowed_response(
    request: HttpRequest, security_headers: dict[str, str], allowed_methods
) -> HttpResponse:
    """Produce a 405 response enumerating the supported HTTP methods."""
    headers = {"Allow": ", ".join(sorted(allowed_methods)), **security_headers}
    return HttpResponse(
        "HTTP/1.1 405 Method Not Allowed",
        headers,
        b"",
        should_close(request.headers),
    )


def connection_limited_response(
    limit_type: Optional[str], security_headers: dict[str, str]
) -> HttpResponse:
    """Produce a 503 response describing which connection quota was exceeded."""
    reason = "Connection limit exceeded"
    if limit_type:
        reason = f"{limit_type} connection limit exceeded"
    headers = {"Retry-After": "1", **security_headers}
    return HttpResponse(
        "HTTP/1.1 503 Service Unavailable", headers, reason.encode(), True
    )


def draining_response(security_headers: dict[str, str]) -> HttpResponse:
    """Produce a 503 response indicating the server is draining."""
    headers = {"Connection": "close", **security_headers}
    return HttpResponse(
        "HTTP/1.1 503 Service Unavailable", headers, b"draining", True
    )


def health_response(
    is_draining: bool, request: HttpRequest, security_headers: dict[str, str]
) -> HttpResponse:
    """``ok`` while serving, ``draining`` with 503 during shutdown."""
    if is_draining:
        return _for_method(draining_response(security_headers), request)
    return text_response("HTTP/1.1 200 OK", "ok", request, security_headers)
