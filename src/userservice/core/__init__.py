"""
=============================================================================
CORE SERVER COMPONENTS
=============================================================================

The networking plumbing underneath the request handlers:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  SOCKET SERVER   listening socket, accept loop, signal handling     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ one Connection per accept()
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  THREAD POOL     bounded queue + worker threads                     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │ worker runs the connection
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │  CONNECTION      buffered read, sendall, graceful close             │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
]
