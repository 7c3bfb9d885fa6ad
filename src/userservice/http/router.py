"""
=============================================================================
PREFIX ROUTER
=============================================================================

Maps a raw request onto one of the registered handlers by checking whether
the request text STARTS WITH a literal "METHOD /path" prefix.

=============================================================================
ROUTING FLOW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Incoming Request                                                  │
    │   "GET /users/all HTTP/1.1\r\n..."                                 │
    │        │                                                            │
    │        ▼                                                            │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  ROUTER  (registration order, first match wins)             │   │
    │   │                                                             │   │
    │   │  1. POST /users       → create_user                         │   │
    │   │  2. GET /users/all    → list_users          ← MATCH!        │   │
    │   │  3. GET /users        → get_user                            │   │
    │   │  4. PUT /users        → update_user                         │   │
    │   │  5. DELETE /users     → delete_user                         │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                            │
    │        ▼                                                            │
    │   handler(request) → HTTPResponse                                   │
    │                                                                     │
    │   No prefix matched → 404 "Not found"                               │
    └─────────────────────────────────────────────────────────────────────┘

Because "GET /users" is also a prefix of "GET /users/all", ORDER MATTERS:
the more specific route has to be registered first.

Matching is purely textual. "GET /usersXYZ" matches "GET /users" and
lands in the single-user handler, which then rejects the empty id.

=============================================================================
ERROR BOUNDARY
=============================================================================

handle() is the only place exceptions become responses:

    ServiceError subclass  → its status + its message
    anything else          → 500 "Error occurred" (traceback logged)

Nothing escapes handle(), so one bad request can never take a worker
thread down.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, List, Optional
import logging

from ..errors import ServiceError
from .request import HTTPRequest
from .response import HTTPResponse, error_response, internal_error, not_found

logger = logging.getLogger(__name__)


# Type alias for handler functions
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """
    A registered route.

        Route(
            method="GET",
            path="/users/all",
            handler=handlers.list_all,
            name="list_users",
        )

    The route matches when the raw request starts with "GET /users/all".
    """

    method: str
    path: str
    handler: Handler
    name: Optional[str] = None

    @property
    def prefix(self) -> str:
        """Literal text the raw request must start with."""
        return f"{self.method} {self.path}"

    def matches(self, raw: str) -> bool:
        return raw.startswith(self.prefix)


class Router:
    """
    Ordered list of prefix routes with a built-in error boundary.

    Usage:
        router = Router()
        router.add_route("GET", "/users/all", handlers.list_all)

        response = router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        method: str,
        path: str,
        handler: Handler,
        name: Optional[str] = None,
    ) -> Route:
        """
        Append a route. Earlier routes win over later ones.

        Args:
            method: HTTP method token (case-insensitive, stored upper-case).
            path: Path prefix, e.g. "/users".
            handler: Callable taking an HTTPRequest, returning HTTPResponse.
            name: Optional route name (shows up in logs).

        Returns:
            The registered Route.
        """
        route = Route(
            method=method.upper(),
            path=path,
            handler=handler,
            name=name or getattr(handler, "__name__", None),
        )
        self._routes.append(route)
        logger.debug("Registered route %s -> %s", route.prefix, route.name)
        return route

    # =========================================================================
    # MATCHING AND DISPATCH
    # =========================================================================

    def match(self, raw: str) -> Optional[Route]:
        """
        Find the first route whose prefix starts the raw request text.

        Returns:
            The matching Route, or None.
        """
        for route in self._routes:
            if route.matches(raw):
                return route
        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request and run its handler.

        Exactly one handler runs per request. Every exception raised by
        the handler is converted into a response here.
        """
        route = self.match(request.raw)
        if route is None:
            return not_found("Not found")

        try:
            return route.handler(request)
        except ServiceError as e:
            if e.status >= 500:
                logger.warning("%s failed: %s", route.name, e.message)
            return error_response(e.status, e.message)
        except Exception:
            logger.exception("Unhandled error in %s", route.name)
            return internal_error("Error occurred")

    def routes(self) -> List[Route]:
        """All registered routes, in match order."""
        return list(self._routes)
