"""
pytest configuration and fixtures.
"""

import socket
import threading
from typing import Generator, Tuple
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from userservice import ServiceConfig, UserServer
from userservice.db import UserGateway, create_db_engine
from userservice.handlers import UserHandlers
from userservice.http import Router


def build_request(method: str, path: str, body: str = "") -> bytes:
    """Raw request bytes with a Content-Length matching the body."""
    encoded = body.encode("utf-8")
    head = (
        f"{method} {path} HTTP/1.1\r\n"
        f"Host: localhost\r\n"
        f"Content-Type: application/json\r\n"
        f"Content-Length: {len(encoded)}\r\n"
        f"\r\n"
    )
    return head.encode("utf-8") + encoded


def send_raw(address: Tuple[str, int], data: bytes, timeout: float = 5.0) -> bytes:
    """Send bytes, then read the response until the server closes."""
    with socket.create_connection(address, timeout=timeout) as s:
        s.sendall(data)
        chunks = []
        while True:
            chunk = s.recv(4096)
            if not chunk:
                break
            chunks.append(chunk)
    return b"".join(chunks)


@pytest.fixture
def sample_get_request() -> bytes:
    """Sample GET for a single user."""
    return (
        b"GET /users/7 HTTP/1.1\r\n"
        b"Host: localhost:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_post_request() -> bytes:
    """Sample POST with a JSON body."""
    return build_request("POST", "/users", '{"name": "Ann", "email": "ann@x.com"}')


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """SQLite file database, fresh per test."""
    return f"sqlite:///{tmp_path / 'users.db'}"


@pytest.fixture
def config(database_url: str) -> ServiceConfig:
    """Test configuration on an OS-assigned port."""
    return ServiceConfig(
        database_url=database_url,
        host="127.0.0.1",
        port=0,
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def gateway(config: ServiceConfig) -> Generator[UserGateway, None, None]:
    """Gateway with the users table already created."""
    gw = UserGateway(create_db_engine(config))
    gw.ensure_schema()
    yield gw
    gw.dispose()


@pytest.fixture
def router(gateway: UserGateway) -> Router:
    """Router with the five user routes registered."""
    return UserHandlers(gateway).register(Router())


class RunningServer:
    """Runs a UserServer on a background thread."""

    def __init__(self, server: UserServer):
        self.server = server
        self.exit_code = None
        self._thread: threading.Thread = None

    @property
    def address(self) -> Tuple[str, int]:
        return self.server.address

    def _run(self):
        self.exit_code = self.server.run()

    def start(self):
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Server failed to start")

    def request(self, method: str, path: str, body: str = "") -> bytes:
        return send_raw(self.address, build_request(method, path, body))

    def stop(self):
        self.server.shutdown()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)


@pytest.fixture
def running_server(config: ServiceConfig) -> Generator[RunningServer, None, None]:
    """A live server backed by the per-test SQLite database."""
    srv = RunningServer(UserServer(config))
    srv.start()

    yield srv

    srv.stop()
