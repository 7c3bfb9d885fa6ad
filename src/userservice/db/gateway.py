"""
=============================================================================
PERSISTENCE GATEWAY
=============================================================================

All SQL the service ever runs lives in this module.

SQLAlchemy is used in its Core flavour only: a Table object, statement
builders and the engine's connection pool. There are no mapped classes
and no sessions.

=============================================================================
ONE OPERATION = ONE CHECKOUT = ONE STATEMENT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                     │
    │   handler ──► gateway.get(7)                                        │
    │                   │                                                 │
    │                   ▼                                                 │
    │              engine.connect()  ◄──── QueuePool (bounded)            │
    │                   │                   pool_size + max_overflow      │
    │                   ▼                                                 │
    │              BEGIN                                                  │
    │              SELECT id, name, email FROM users WHERE id = :id       │
    │              COMMIT / ROLLBACK                                      │
    │                   │                                                 │
    │                   ▼                                                 │
    │              conn.close()  ───► connection returns to the pool      │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘

With pool_size=0 the engine uses NullPool instead: every operation opens
and closes its own database connection.

=============================================================================
FAILURE MAPPING
=============================================================================

    ┌────────────────────────────────┬────────────────────────────────────┐
    │ connect() fails / pool timeout │ StorageUnavailableError (500)      │
    │ statement fails                │ StorageError (500)                 │
    │ no row for get / delete        │ UserNotFoundError (404)            │
    └────────────────────────────────┴────────────────────────────────────┘

Update of a missing id is NOT an error: the statement succeeds with a
rowcount of 0 and the caller decides what to make of it.

=============================================================================
"""

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List
import logging

from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool, QueuePool

from ..errors import StorageError, StorageUnavailableError, UserNotFoundError
from ..models import User

if TYPE_CHECKING:
    from ..config import ServiceConfig

logger = logging.getLogger(__name__)


metadata = MetaData()

users_table = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String, nullable=False),
    Column("email", String, nullable=False),
)


# =============================================================================
# ENGINE FACTORY
# =============================================================================

def normalize_url(database_url: str) -> URL:
    """Parse the URL, accepting the short postgres:// scheme as postgresql."""
    url = make_url(database_url)
    if url.drivername == "postgres":
        url = url.set(drivername="postgresql")
    return url


def _connect_args(url: URL, config: "ServiceConfig") -> Dict[str, Any]:
    """Driver-level options for the configured backend."""
    backend = url.get_backend_name()

    if backend == "postgresql":
        return {
            "connect_timeout": config.db_connect_timeout,
            "options": f"-c statement_timeout={config.db_statement_timeout_ms}",
        }
    if backend == "sqlite":
        # Connections are shared between worker threads through the pool.
        return {"check_same_thread": False, "timeout": config.db_connect_timeout}
    return {}


def create_db_engine(config: "ServiceConfig") -> Engine:
    """
    Build the engine (and so the connection pool) once at startup.

    Args:
        config: Service configuration carrying the URL and pool settings.

    Returns:
        A SQLAlchemy Engine. No connection is opened yet.
    """
    url = normalize_url(config.database_url)
    engine_config: Dict[str, Any] = {
        "connect_args": _connect_args(url, config),
        "pool_pre_ping": True,
    }

    if config.db_pool_size > 0:
        engine_config.update(
            poolclass=QueuePool,
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_timeout=config.db_pool_timeout,
            pool_recycle=config.db_pool_recycle,
        )
    else:
        engine_config["poolclass"] = NullPool

    engine = create_engine(url, **engine_config)
    logger.info(
        "Database engine created for %s (pool=%s)",
        engine.url.render_as_string(hide_password=True),
        type(engine.pool).__name__,
    )
    return engine


# =============================================================================
# GATEWAY
# =============================================================================

class UserGateway:
    """
    CRUD operations on the users table.

    Usage:
        gateway = UserGateway(create_db_engine(config))
        gateway.ensure_schema()

        user = gateway.create(User(name="Ann", email="ann@x.com"))
        gateway.get(user.id)

    Thread-safe: every call checks out its own connection.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """
        Check a connection out of the pool and open a transaction on it.

        The transaction commits when the block exits cleanly and rolls
        back otherwise. The connection always goes back to the pool.
        """
        try:
            conn = self.engine.connect()
        except SQLAlchemyError as e:
            logger.error("Could not obtain a database connection: %s", e)
            raise StorageUnavailableError() from e

        try:
            with conn.begin():
                yield conn
        except SQLAlchemyError as e:
            logger.error("Database statement failed: %s", e)
            raise StorageError() from e
        finally:
            conn.close()

    def ensure_schema(self) -> None:
        """Create the users table if it does not exist yet."""
        try:
            metadata.create_all(self.engine, checkfirst=True)
        except SQLAlchemyError as e:
            logger.error("Schema creation failed: %s", e)
            raise StorageUnavailableError() from e
        logger.info("Schema ready (table %s)", users_table.name)

    def create(self, user: User) -> User:
        """
        INSERT a new row. Any id on the input is ignored.

        Returns:
            A new User carrying the storage-assigned id.
        """
        stmt = insert(users_table).values(name=user.name, email=user.email)
        with self._connect() as conn:
            result = conn.execute(stmt)
            new_id = result.inserted_primary_key[0]
        return User(id=new_id, name=user.name, email=user.email)

    def get(self, user_id: int) -> User:
        """
        SELECT one row by id.

        Raises:
            UserNotFoundError: If no row has this id.
        """
        stmt = select(
            users_table.c.id, users_table.c.name, users_table.c.email
        ).where(users_table.c.id == user_id)

        with self._connect() as conn:
            row = conn.execute(stmt).first()

        if row is None:
            raise UserNotFoundError()
        return User.from_row(row)

    def list_all(self) -> List[User]:
        """SELECT every row, ordered by id."""
        stmt = select(
            users_table.c.id, users_table.c.name, users_table.c.email
        ).order_by(users_table.c.id)

        with self._connect() as conn:
            rows = conn.execute(stmt).all()
        return [User.from_row(row) for row in rows]

    def update(self, user_id: int, user: User) -> int:
        """
        UPDATE name and email together.

        Returns:
            Number of rows affected (0 when the id does not exist).
        """
        stmt = (
            update(users_table)
            .where(users_table.c.id == user_id)
            .values(name=user.name, email=user.email)
        )
        with self._connect() as conn:
            result = conn.execute(stmt)
            return result.rowcount

    def delete(self, user_id: int) -> None:
        """
        DELETE one row by id.

        Raises:
            UserNotFoundError: If no row was removed.
        """
        stmt = delete(users_table).where(users_table.c.id == user_id)
        with self._connect() as conn:
            deleted = conn.execute(stmt).rowcount

        if deleted == 0:
            raise UserNotFoundError()

    def dispose(self) -> None:
        """Close every pooled connection."""
        self.engine.dispose()
