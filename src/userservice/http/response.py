"""
=============================================================================
HTTP RESPONSE FORMATTER
=============================================================================

Turns a handler outcome into the exact bytes written back on the socket.

=============================================================================
WIRE FORMAT
=============================================================================

Every response is a status line, an optional Content-Type header, an
empty line and the body. Nothing else:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SUCCESS                                                            │
    │  ─────────────────────────────────────────────────────────────────  │
    │  HTTP/1.1 200 OK\r\n                                               │
    │  Content-Type: application/json\r\n                                │
    │  \r\n                                                               │
    │  {"id": 1, "name": "Ann", "email": "ann@x.com"}                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │  FAILURE                                                            │
    │  ─────────────────────────────────────────────────────────────────  │
    │  HTTP/1.1 404 NOT FOUND\r\n                                        │
    │  \r\n                                                               │
    │  User not found                                                     │
    └─────────────────────────────────────────────────────────────────────┘

There is no Content-Length header. Each connection carries exactly one
request and one response, so the client detects the end of the body when
the server closes the socket.

Successful writes (create / update / delete) answer with a plain text
confirmation such as "User created" while still advertising
application/json. Clients rely on that, so it stays.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, Optional, Union
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"


@dataclass
class HTTPResponse:
    """
    A response ready to be serialized.

    Attributes:
        status: Status code (enum).
        body: Body bytes.
        content_type: Value for the Content-Type header, or None to omit
                      the header entirely.
        version: Protocol version for the status line.
    """

    status: HTTPStatus = HTTPStatus.OK
    body: bytes = b""
    content_type: Optional[str] = None
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """
        Get the HTTP status line.

        Example: "HTTP/1.1 404 NOT FOUND"
        """
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def text(self) -> str:
        """Body decoded as UTF-8 (handy in tests and logs)."""
        return self.body.decode("utf-8", errors="replace")

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

            HTTP/1.1 200 OK\r\n
            Content-Type: application/json\r\n     ← only when set
            \r\n
            <body>
        """
        lines = [self.status_line]

        if self.content_type:
            lines.append(f"Content-Type: {self.content_type}")

        # Empty line separates headers from body
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


def _encode(body: Union[str, bytes]) -> bytes:
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
# One-liners for every outcome a handler can produce:
#
#     return ok_json(user.to_dict())
#     return ok_text("User created")
#     return not_found("User not found")
#     return internal_error("Invalid ID format")
#
# =============================================================================

def ok_json(data: Any) -> HTTPResponse:
    """
    200 OK with a JSON-encoded body.

    Raises:
        TypeError / ValueError: If data is not JSON serializable. The
        router turns that into a 500 like any other failure.
    """
    body = json.dumps(data, ensure_ascii=False)
    return HTTPResponse(
        status=HTTPStatus.OK,
        body=body.encode("utf-8"),
        content_type=JSON_CONTENT_TYPE,
    )


def ok_text(message: str) -> HTTPResponse:
    """200 OK with a literal confirmation string as the body."""
    return HTTPResponse(
        status=HTTPStatus.OK,
        body=_encode(message),
        content_type=JSON_CONTENT_TYPE,
    )


def not_found(message: str = "Not found") -> HTTPResponse:
    """404 NOT FOUND, plain text body, no Content-Type."""
    return HTTPResponse(status=HTTPStatus.NOT_FOUND, body=_encode(message))


def internal_error(message: str = "Error occurred") -> HTTPResponse:
    """500 INTERNAL SERVER ERROR, plain text body, no Content-Type."""
    return HTTPResponse(status=HTTPStatus.INTERNAL_SERVER_ERROR, body=_encode(message))


def service_unavailable(message: str = "Server overloaded") -> HTTPResponse:
    """503 SERVICE UNAVAILABLE, sent when no worker can take the connection."""
    return HTTPResponse(status=HTTPStatus.SERVICE_UNAVAILABLE, body=_encode(message))


def error_response(status: int, message: str) -> HTTPResponse:
    """Plain text error response for an arbitrary status code."""
    return HTTPResponse(status=HTTPStatus(status), body=_encode(message))
