"""
=============================================================================
USER SERVICE SERVER
=============================================================================

Wires every component together and owns the process lifecycle.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  run()                                                              │
    │    │                                                                │
    │    ├──► _setup_logging()                                            │
    │    ├──► setup()                                                     │
    │    │       ├── create_db_engine(config)   pool, timeouts            │
    │    │       ├── UserGateway.ensure_schema() CREATE TABLE IF NOT ...  │
    │    │       ├── UserHandlers.register(router)                        │
    │    │       └── LoggingMiddleware ∘ router.handle                    │
    │    ├──► ThreadPool.start()                                          │
    │    ├──► SocketServer.start(_handle_connection)   ← blocks here      │
    │    │                                                                │
    │    └──► finally: pool drains, engine disposed                       │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PER-CONNECTION FLOW (worker thread)
=============================================================================

    read_request() ──► RequestParser.parse() ──► middleware + router
                                                        │
    close()  ◄── send_response(response.to_bytes()) ◄───┘

One request per connection. A transport failure while reading drops the
connection without a response; anything after that always answers.

=============================================================================
"""

import logging
from typing import Callable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from .config import ServiceConfig
from .core import SocketServer, Connection, ThreadPool
from .db import UserGateway, create_db_engine
from .errors import StorageError
from .handlers import UserHandlers
from .http import (
    HTTPRequest, HTTPResponse, RequestParser, Router,
    internal_error, service_unavailable,
)
from .middleware import LoggingMiddleware, MiddlewarePipeline


logger = logging.getLogger(__name__)


class UserServer:
    """
    The user CRUD service.

    Usage:
        config = ServiceConfig.from_env()
        server = UserServer(config)
        sys.exit(server.run())

    Pass a ready gateway to skip engine creation (tests do this to share
    one database between the server and assertions).
    """

    def __init__(self, config: ServiceConfig, gateway: Optional[UserGateway] = None):
        self.config = config
        self.config.validate()

        self._gateway = gateway

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
            queue_size=self.config.queue_size,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)
        self._router = Router()
        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))

        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

    @property
    def router(self) -> Router:
        return self._router

    @property
    def gateway(self) -> Optional[UserGateway]:
        return self._gateway

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port) once listening."""
        return self._socket_server.address

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket is bound."""
        return self._socket_server.ready.wait(timeout)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def setup(self):
        """
        Build storage and routing.

        Raises:
            StorageError: If the schema cannot be created.
            SQLAlchemyError: If the database URL is unusable.
        """
        if self._gateway is None:
            self._gateway = UserGateway(create_db_engine(self.config))

        self._gateway.ensure_schema()

        if not self._router.routes():
            UserHandlers(self._gateway).register(self._router)

        self._handler = self._middleware.wrap(self._router.handle)

        for route in self._router.routes():
            logger.debug("Route %-16s -> %s", route.prefix, route.name)

    def run(self) -> int:
        """
        Start the server (blocking) until SIGINT/SIGTERM or shutdown().

        Returns:
            Process exit status: 0 on a clean stop, 1 on a fatal startup
            error.
        """
        self._setup_logging()

        try:
            self.setup()
        except (StorageError, SQLAlchemyError) as e:
            logger.error("Database initialization failed: %s", e)
            self._dispose()
            return 1

        self._thread_pool.start()
        logger.info(
            "Starting user service on %s:%s (%d-%d workers)",
            self.config.host, self.config.port,
            self.config.min_workers, self.config.max_workers,
        )

        try:
            self._socket_server.start(self._handle_connection)
        except OSError as e:
            logger.error("Could not start listener: %s", e)
            return 1
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

        return 0

    def shutdown(self):
        """Ask the accept loop to stop. Safe from any thread."""
        self._socket_server.shutdown()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

        logging.getLogger("userservice").setLevel(level)

    def _shutdown(self):
        """
        Graceful shutdown.

        1. Stop accepting (already done when we get here)
        2. Let queued and in-flight connections finish
        3. Release pooled database connections
        """
        logger.info("Shutting down server...")
        self._thread_pool.shutdown(wait=True, timeout=30.0)
        self._dispose()
        logger.info("Server stopped")

    def _dispose(self):
        if self._gateway is not None:
            self._gateway.dispose()

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """
        Hand a connection to the worker pool (runs on the accept thread).

        A saturated pool answers 503 right here and closes.
        """
        submitted = self._thread_pool.submit(self._process_connection, args=(conn,))

        if not submitted:
            logger.warning(
                "[%s] Thread pool full (%d workers), rejecting connection",
                conn.id, self._thread_pool.worker_count,
            )
            conn.send_response(service_unavailable("Server overloaded").to_bytes())
            conn.close()

    def _process_connection(self, conn: Connection):
        """Read, dispatch, answer, close (runs on a worker thread)."""
        with conn:
            try:
                raw_request = conn.read_request()
            except OSError as e:
                logger.warning("[%s] Failed to read request from %s: %s", conn.id, conn.client_ip, e)
                return

            if raw_request is None:
                logger.debug("[%s] Client closed without sending data", conn.id)
                return

            request = self._parser.parse(raw_request, conn.address)

            try:
                response = self._handler(request)
            except Exception:
                logger.exception("[%s] Handler error", conn.id)
                response = internal_error("Error occurred")

            conn.send_response(response.to_bytes())
