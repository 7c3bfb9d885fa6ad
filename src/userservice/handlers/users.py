"""
=============================================================================
USER HANDLERS
=============================================================================

The five operations of the service, each turning an HTTPRequest into an
HTTPResponse through the persistence gateway.

    ┌────────────────────────┬────────────────────┬─────────────────────────┐
    │ Route prefix           │ Handler            │ 200 body                │
    ├────────────────────────┼────────────────────┼─────────────────────────┤
    │ POST /users            │ create             │ User created            │
    │ GET /users/all         │ list_all           │ [{...}, {...}]          │
    │ GET /users             │ get                │ {"id": .., ...}         │
    │ PUT /users             │ update             │ User updated            │
    │ DELETE /users          │ delete             │ User deleted            │
    └────────────────────────┴────────────────────┴─────────────────────────┘

Handlers raise; they never build error responses themselves. The router
turns ServiceError subclasses into the matching status line.

=============================================================================
ID COERCION
=============================================================================

The id is the third "/" segment of the path and has to fit a signed
32-bit integer:

    "/users/42"     → 42
    "/users/-3"     → -3        (valid syntax, simply never found)
    "/users/abc"    → RequestParseError("Invalid ID format")
    "/users/"       → RequestParseError("Invalid ID format")
    "/users/1?x=2"  → RequestParseError("Invalid ID format")

=============================================================================
"""

from typing import TYPE_CHECKING
import logging
import re

from ..errors import RequestParseError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ok_json, ok_text
from ..models import User

if TYPE_CHECKING:
    from ..db.gateway import UserGateway
    from ..http.router import Router

logger = logging.getLogger(__name__)


_ID_PATTERN = re.compile(r"[+-]?\d+", re.ASCII)

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


def parse_id(raw_id: str) -> int:
    """
    Coerce a path segment into a user id.

    Raises:
        RequestParseError: If the segment is not a 32-bit integer.
    """
    if not _ID_PATTERN.fullmatch(raw_id):
        raise RequestParseError("Invalid ID format")

    value = int(raw_id)
    if not INT32_MIN <= value <= INT32_MAX:
        raise RequestParseError("Invalid ID format")
    return value


class UserHandlers:
    """
    Request handlers bound to one gateway.

    Usage:
        handlers = UserHandlers(gateway)
        handlers.register(router)
    """

    def __init__(self, gateway: "UserGateway"):
        self.gateway = gateway

    def create(self, request: HTTPRequest) -> HTTPResponse:
        user = User.from_json(request.body)
        created = self.gateway.create(user)
        logger.info("Created user %s", created.id)
        return ok_text("User created")

    def get(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_id(request.resource_id)
        return ok_json(self.gateway.get(user_id).to_dict())

    def list_all(self, request: HTTPRequest) -> HTTPResponse:
        users = self.gateway.list_all()
        return ok_json([user.to_dict() for user in users])

    def update(self, request: HTTPRequest) -> HTTPResponse:
        """
        Replace name and email of a user.

        Answers 200 even when no row matched the id.
        """
        user_id = parse_id(request.resource_id)
        user = User.from_json(request.body)

        affected = self.gateway.update(user_id, user)
        if affected == 0:
            logger.info("Update of user %s matched no row", user_id)
        return ok_text("User updated")

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        user_id = parse_id(request.resource_id)
        self.gateway.delete(user_id)
        logger.info("Deleted user %s", user_id)
        return ok_text("User deleted")

    def register(self, router: "Router") -> "Router":
        """
        Attach all five routes to a router.

        "GET /users/all" goes in before "GET /users" so the listing is
        never swallowed by the single-user route.
        """
        router.add_route("POST", "/users", self.create, name="create_user")
        router.add_route("GET", "/users/all", self.list_all, name="list_users")
        router.add_route("GET", "/users", self.get, name="get_user")
        router.add_route("PUT", "/users", self.update, name="update_user")
        router.add_route("DELETE", "/users", self.delete, name="delete_user")
        return router
