"""Shared HTTP type definitions to avoid circular imports."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class HttpRequest:
    """Represents a parsed HTTP request."""

    method: str
    path: str
    headers: dict[str, str]
    body: bytes
    query: dict[str, list[str]] = field(default_factory=dict)

    def query_param(self, name: str) -> Optional[str]:
        """Return the first value of a query parameter, or None when absent."""
        values = self.query.get(name)
        if not values:
            return None
        return values[0]


@dataclass
class HttpResponse:
    """Represents an HTTP response to be sent to a client."""

    status_line: str
    headers: dict[str, str]
    body: bytes
    close_connection: bool
    omit_body: bool = False

    @property
    def status_code(self) -> int:
        return int(self.status_line.split(" ", 2)[1])


def should_close(headers: dict[str, str]) -> bool:
    """Determine whether the connection should be closed after responding."""
    return headers.get("connection", "").lower() == "close"
