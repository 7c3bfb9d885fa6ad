"""
=============================================================================
HTTP LAYER
=============================================================================

The thin slice of HTTP/1.1 this service speaks:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ request.py       raw bytes  → HTTPRequest (method, path, body)      │
    │ router.py        HTTPRequest → handler, by literal prefix           │
    │ response.py      outcome    → status line + body bytes              │
    │ status_codes.py  200 / 404 / 500 / 503 and their phrases            │
    └─────────────────────────────────────────────────────────────────────┘

Headers are not interpreted, there is no keep-alive and chunked bodies
are not supported.

=============================================================================
"""

from .status_codes import HTTPStatus
from .request import HTTPRequest, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ok_json,
    ok_text,
    not_found,
    internal_error,
    service_unavailable,
    error_response,
)
from .router import Router, Route

__all__ = [
    "HTTPStatus",
    "HTTPRequest",
    "RequestParser",
    "parse_request",
    "HTTPResponse",
    "ok_json",
    "ok_text",
    "not_found",
    "internal_error",
    "service_unavailable",
    "error_response",
    "Router",
    "Route",
]
