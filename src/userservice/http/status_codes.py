"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The handful of status codes this service ever answers with.

    ┌──────┬─────────────────────────┬────────────────────────────────────┐
    │ Code │ Reason phrase           │ When                               │
    ├──────┼─────────────────────────┼────────────────────────────────────┤
    │ 200  │ OK                      │ operation succeeded                │
    │ 404  │ NOT FOUND               │ no route, or no row for the id     │
    │ 500  │ INTERNAL SERVER ERROR   │ bad input, storage failure, bugs   │
    │ 503  │ SERVICE UNAVAILABLE     │ worker queue is full               │
    └──────┴─────────────────────────┴────────────────────────────────────┘

Reason phrases are upper-case on the wire. RFC 7230 treats the phrase as
informational, so clients should only ever look at the number.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes and reason phrases.

    IntEnum, so members compare equal to plain integers:

        >>> HTTPStatus.OK == 200
        True
        >>> HTTPStatus.NOT_FOUND.phrase
        'NOT FOUND'
    """

    OK = 200
    NOT_FOUND = 404
    INTERNAL_SERVER_ERROR = 500
    SERVICE_UNAVAILABLE = 503

    @property
    def phrase(self) -> str:
        """Reason phrase used in the status line."""
        return _STATUS_PHRASES.get(self, "UNKNOWN")


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.NOT_FOUND: "NOT FOUND",
    HTTPStatus.INTERNAL_SERVER_ERROR: "INTERNAL SERVER ERROR",
    HTTPStatus.SERVICE_UNAVAILABLE: "SERVICE UNAVAILABLE",
}
