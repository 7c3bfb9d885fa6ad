"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure a handler can hit is expressed as a ServiceError subclass
that carries the HTTP status it should be answered with. The router is
the single place where these are turned into responses:

    ┌────────────────────────────┬────────┬─────────────────────────────┐
    │  Exception                 │ Status │ Raised when                 │
    ├────────────────────────────┼────────┼─────────────────────────────┤
    │  RequestParseError         │  500   │ bad id segment / bad JSON   │
    │  UserNotFoundError         │  404   │ no row for read / delete    │
    │  StorageUnavailableError   │  500   │ cannot get a DB connection  │
    │  StorageError              │  500   │ statement failed            │
    └────────────────────────────┴────────┴─────────────────────────────┘

Parse errors are answered with 500 rather than 400 to keep the wire
behaviour clients already depend on.

=============================================================================
"""


class ServiceError(Exception):
    """
    Base class for failures that map onto an HTTP response.

    Like the parser errors of most HTTP stacks, the exception carries its
    own status code so the boundary that catches it does not need a
    lookup table.
    """

    status: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RequestParseError(ServiceError):
    """Malformed resource id or request body."""


class UserNotFoundError(ServiceError):
    """No user row matched the requested id."""

    status = 404

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class StorageError(ServiceError):
    """A statement failed inside the database."""

    def __init__(self, message: str = "Database error"):
        super().__init__(message)


class StorageUnavailableError(StorageError):
    """No database connection could be obtained."""

    def __init__(self, message: str = "Database connection error"):
        super().__init__(message)


class ConfigError(ValueError):
    """Invalid or missing configuration detected at startup."""
