"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Pulls the few pieces this service needs out of raw request bytes.

This is deliberately NOT a full HTTP/1.1 parser. Headers are never
interpreted here; the router works on the literal request text and the
handlers only need the method, the path and the body.

=============================================================================
WHAT GETS EXTRACTED
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  PUT /users/42 HTTP/1.1\r\n                                        │
    │  ─┬─ ────┬────                                                      │
    │   │      │                                                          │
    │   │      └── path         "/users/42"                               │
    │   │            split("/") → ["", "users", "42"]                     │
    │   │                                       ──┬─                      │
    │   │                                         └── resource_id  "42"   │
    │   └── method              "PUT"                                     │
    │                                                                     │
    │  Host: localhost:8080\r\n      ← ignored                           │
    │  Content-Type: ...\r\n         ← ignored                           │
    │  \r\n                          ← first blank line                  │
    │  {"name": "Ann", ...}          ← body (everything after it)        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
LENIENCY
=============================================================================

parse() never raises. Missing pieces come back as empty strings:

    b""                         → method "", path "", body ""
    b"GET\r\n\r\n"              → method "GET", path ""
    b"GET /users/ HTTP/1.1..."  → resource_id ""

A request that does not match any route simply gets a 404 later on, and
a bad id or body is reported by the handler that needed it.

Bytes that are not valid UTF-8 are replaced with U+FFFD rather than
rejected.

=============================================================================
"""

from dataclasses import dataclass


HEADER_TERMINATOR = "\r\n\r\n"


@dataclass
class HTTPRequest:
    """
    A parsed request.

    Attributes:
        method: First token of the request line (GET, POST, PUT, DELETE).
        path: Second token of the request line, as sent.
        body: Text after the first blank line.
        raw: The whole decoded request; routing matches prefixes of this.
        client_address: (ip, port) of the peer, for logging.
    """

    method: str = ""
    path: str = ""
    body: str = ""
    raw: str = ""
    client_address: tuple[str, int] = ("", 0)

    @property
    def resource_id(self) -> str:
        """
        The id segment of the path.

        "/users/42" splits into ["", "users", "42"]; index 2 is the id.
        Anything shorter yields an empty string.
        """
        segments = self.path.split("/")
        if len(segments) > 2:
            return segments[2]
        return ""


class RequestParser:
    """
    Converts raw bytes into HTTPRequest objects.

        parser = RequestParser(max_request_size=65536)
        request = parser.parse(data, ("127.0.0.1", 50123))

    Data beyond max_request_size is dropped before decoding. Oversized
    requests are truncated rather than rejected.
    """

    def __init__(self, max_request_size: int = 64 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0),
    ) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Bytes read from the connection.
            client_address: Peer address, stored on the request.

        Returns:
            HTTPRequest. Never raises.
        """
        text = data[: self.max_request_size].decode("utf-8", errors="replace")

        # ─────────────────────────────────────────────────────────────────
        # REQUEST LINE: "METHOD PATH VERSION"
        # ─────────────────────────────────────────────────────────────────
        request_line = text.split("\r\n", 1)[0]
        tokens = request_line.split()
        method = tokens[0] if tokens else ""
        path = tokens[1] if len(tokens) > 1 else ""

        # ─────────────────────────────────────────────────────────────────
        # BODY: everything after the FIRST blank line
        # ─────────────────────────────────────────────────────────────────
        _, separator, body = text.partition(HEADER_TERMINATOR)
        if not separator:
            body = ""

        return HTTPRequest(
            method=method,
            path=path,
            body=body,
            raw=text,
            client_address=client_address,
        )


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 64 * 1024,
) -> HTTPRequest:
    """Parse in one call with a throwaway RequestParser."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
