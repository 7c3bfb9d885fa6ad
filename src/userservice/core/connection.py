"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted TCP socket for the lifetime of a single request.

=============================================================================
WHY READING IS A LOOP
=============================================================================

TCP is a byte stream, not a message stream. A single request can arrive
split over several recv() calls:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  recv #1:  "POST /users HTTP/1.1\r\nContent-Length: 38\r\n\r\n"    │
    │  recv #2:  '{"name": "Ann", "email": "ann@x.com"}'                  │
    └─────────────────────────────────────────────────────────────────────┘

Reading once would hand the handler an empty body. read_request() keeps
going until ONE of these holds:

    1. headers complete AND Content-Length body bytes received
    2. the peer half-closed its side (recv returned b"")
    3. the socket timed out (whatever arrived is used)
    4. max_request_size bytes buffered (the rest is dropped)

Once the request line is in but the blank line ending the headers is
not, the read timeout drops to header_idle_timeout. A client typing a
bare request line by hand gets its answer after that short pause
instead of the full timeout.

Header lines are only scanned for Content-Length; nothing else in them
is interpreted. There is no keep-alive: one request, one response, then
close().

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional
import uuid


logger = logging.getLogger(__name__)


HEADER_TERMINATOR = b"\r\n\r\n"


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The accepted client socket.
        address: Client's (ip, port) tuple.
        id: Short identifier used in log lines.
        buffer_size: Bytes asked for per recv() call.
        timeout: Socket read timeout in seconds.
        header_idle_timeout: Read timeout while a request line is buffered
                             but the headers are unfinished.
        max_request_size: Hard cap on buffered request bytes.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)

    buffer_size: int = 1024
    timeout: float = 30.0
    header_idle_timeout: float = 1.0
    max_request_size: int = 64 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Seconds since the connection was accepted."""
        return time.time() - self.created_at

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one request from the socket.

        ┌─────────────────────────────────────────────────────────────────┐
        │   while not complete:                                           │
        │       chunk = recv(buffer_size)                                 │
        │       chunk == b""          → peer closed, stop                 │
        │       len(buffer) >= cap    → truncate, stop                    │
        │       headers done?         → look up Content-Length            │
        │       body long enough?     → stop                              │
        └─────────────────────────────────────────────────────────────────┘

        Returns:
            The request bytes (possibly partial), or None if the peer
            closed without sending anything.

        Raises:
            TimeoutError: If the read timed out before any byte arrived.
            OSError: On a transport failure with nothing buffered.
        """
        self.state = ConnectionState.READING

        try:
            while not self._request_complete():
                self.socket.settimeout(self._read_timeout())
                chunk = self._recv()
                if not chunk:
                    break  # Peer half-closed

                self._buffer += chunk

                if len(self._buffer) >= self.max_request_size:
                    logger.warning(
                        "[%s] Request reached %d bytes, truncating",
                        self.id, self.max_request_size,
                    )
                    self._buffer = self._buffer[: self.max_request_size]
                    break
        except socket.timeout:
            if not self._buffer:
                raise TimeoutError("Request read timeout")
            logger.debug("[%s] Read timed out, using %d buffered bytes", self.id, len(self._buffer))
        except OSError as e:
            if not self._buffer:
                raise
            logger.warning("[%s] Read failed (%s), using %d buffered bytes", self.id, e, len(self._buffer))

        if not self._buffer:
            return None

        self.state = ConnectionState.PROCESSING
        data, self._buffer = self._buffer, b""
        return data

    def _request_complete(self) -> bool:
        """Headers seen and at least Content-Length body bytes buffered."""
        header_end = self._buffer.find(HEADER_TERMINATOR)
        if header_end == -1:
            return False

        body_start = header_end + len(HEADER_TERMINATOR)
        content_length = self._parse_content_length(self._buffer[:header_end])
        return len(self._buffer) - body_start >= content_length

    def _read_timeout(self) -> Optional[float]:
        """Full timeout, or the short idle gap after a bare request line."""
        if b"\r\n" in self._buffer and HEADER_TERMINATOR not in self._buffer:
            if self.timeout:
                return min(self.timeout, self.header_idle_timeout)
            return self.header_idle_timeout
        return self.timeout or None

    def _recv(self) -> bytes:
        """
        socket.recv() that treats a reset peer like a closed one.

        Returns:
            Received bytes, or b"" if the connection is gone.
        """
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Content-Length from raw header bytes, 0 if absent or unreadable.

        A plain line scan; the rest of the headers are never parsed.
        """
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            if line.startswith("content-length:"):
                try:
                    return max(0, int(line.split(":", 1)[1].strip()))
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING AND CLOSING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Write the full response with sendall().

        Returns:
            True if sent, False if the peer went away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning("[%s] Send failed: %s", self.id, e)
            return False

    def close(self):
        """
        Close the connection gracefully.

        1. shutdown(SHUT_WR) sends FIN so the client sees end-of-body
        2. drain whatever the client still sends
        3. close() releases the file descriptor
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug("[%s] Connection closed after %.3fs", self.id, self.age)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
