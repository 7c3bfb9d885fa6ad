"""
=============================================================================
SERVICE CONFIGURATION
=============================================================================

Every tunable of the service in one dataclass, read once at startup and
passed down explicitly:

    ServiceConfig ──► create_db_engine() ──► UserGateway ──► UserHandlers
          │
          └─────────► SocketServer / ThreadPool / LoggingMiddleware

Values come from, in increasing priority:

    1. the defaults below
    2. a .env file in the working directory (python-dotenv)
    3. the process environment
    4. command line flags (see __main__.py)

=============================================================================
ENVIRONMENT VARIABLES
=============================================================================

    DATABASE_URL              SQLAlchemy URL (REQUIRED)
                              e.g. postgresql+psycopg2://user:pw@db/users
                              (postgres://... is accepted as postgresql)
    HTTP_HOST                 bind address            (0.0.0.0)
    HTTP_PORT                 bind port               (8080)
    HTTP_WORKERS              max worker threads      (16)
    HTTP_TIMEOUT              socket read timeout s   (30)
    HTTP_HEADER_IDLE_TIMEOUT  wait after a bare request line s (1)
    HTTP_MAX_REQUEST_SIZE     request byte cap        (65536)
    HTTP_LOG_LEVEL            DEBUG/INFO/...          (INFO)
    HTTP_LOG_FORMAT           text / json             (text)
    DB_POOL_SIZE              pooled connections      (5, 0 = no pool)
    DB_MAX_OVERFLOW           burst connections       (10)
    DB_POOL_TIMEOUT           checkout wait s         (10)
    DB_POOL_RECYCLE           connection max age s    (3600)
    DB_CONNECT_TIMEOUT        connect timeout s       (10)
    DB_STATEMENT_TIMEOUT_MS   PostgreSQL statement_timeout (30000)

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError


T = TypeVar("T")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(name: str, default: T, cast: Callable[[str], T]) -> T:
    """Read and convert one environment variable."""
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"Invalid value for {name}: {raw!r}") from e


@dataclass
class ServiceConfig:
    """
    Configuration for the user service.

    Groups:
        DATABASE   database_url, db_pool_*, db_*_timeout*
        NETWORK    host, port, backlog, buffer_size, timeout,
                   header_idle_timeout
        REQUESTS   max_request_size
        THREADING  min_workers, max_workers, queue_size
        LOGGING    log_level, log_format
    """

    database_url: str = ""

    host: str = "0.0.0.0"
    port: int = 8080
    backlog: int = 128
    buffer_size: int = 1024
    timeout: Optional[float] = 30.0
    header_idle_timeout: float = 1.0
    """Read timeout once a request line is in but the headers are not."""

    max_request_size: int = 64 * 1024
    """Bytes beyond this are dropped before parsing."""

    min_workers: int = 4
    max_workers: int = 16
    queue_size: int = 100
    """Connections waiting for a worker. When full, clients get a 503."""

    db_pool_size: int = 5
    """Persistent pooled connections. 0 opens a new connection per operation."""
    db_max_overflow: int = 10
    db_pool_timeout: float = 10.0
    db_pool_recycle: int = 3600
    db_connect_timeout: int = 10
    db_statement_timeout_ms: int = 30000

    log_level: str = "INFO"
    log_format: str = "text"

    @classmethod
    def from_env(
        cls,
        load_env_file: bool = True,
        database_url: Optional[str] = None,
    ) -> "ServiceConfig":
        """
        Build configuration from the environment.

        Args:
            load_env_file: Load a .env file first. Variables already set
                           in the environment win over the file.
            database_url: Use this instead of DATABASE_URL.

        Raises:
            ConfigError: If DATABASE_URL is missing or a value is invalid.
        """
        if load_env_file:
            load_dotenv(find_dotenv(usecwd=True))

        database_url = database_url or os.getenv("DATABASE_URL", "")
        if not database_url:
            raise ConfigError("DATABASE_URL environment variable is not set")

        max_workers = _env("HTTP_WORKERS", 16, int)

        return cls(
            database_url=database_url,
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=_env("HTTP_PORT", 8080, int),
            min_workers=min(cls.min_workers, max_workers),
            max_workers=max_workers,
            timeout=_env("HTTP_TIMEOUT", 30.0, float),
            header_idle_timeout=_env("HTTP_HEADER_IDLE_TIMEOUT", 1.0, float),
            max_request_size=_env("HTTP_MAX_REQUEST_SIZE", 64 * 1024, int),
            db_pool_size=_env("DB_POOL_SIZE", 5, int),
            db_max_overflow=_env("DB_MAX_OVERFLOW", 10, int),
            db_pool_timeout=_env("DB_POOL_TIMEOUT", 10.0, float),
            db_pool_recycle=_env("DB_POOL_RECYCLE", 3600, int),
            db_connect_timeout=_env("DB_CONNECT_TIMEOUT", 10, int),
            db_statement_timeout_ms=_env("DB_STATEMENT_TIMEOUT_MS", 30000, int),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO").upper(),
            log_format=os.getenv("HTTP_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """
        Fail fast on values that would only break later.

        Raises:
            ConfigError: Naming the offending setting.
        """
        if not self.database_url:
            raise ConfigError("database_url is required")

        if not 0 <= self.port < 65536:
            raise ConfigError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigError("max_workers must be >= min_workers")

        if self.queue_size < 1:
            raise ConfigError("queue_size must be >= 1")

        if self.buffer_size < 1:
            raise ConfigError("buffer_size must be >= 1")

        if self.max_request_size < 1:
            raise ConfigError("max_request_size must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError("timeout must be > 0")

        if self.header_idle_timeout <= 0:
            raise ConfigError("header_idle_timeout must be > 0")

        if self.db_pool_size < 0 or self.db_max_overflow < 0:
            raise ConfigError("db_pool_size and db_max_overflow must be >= 0")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ConfigError(f"Invalid log format: {self.log_format}")
