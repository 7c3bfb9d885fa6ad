"""
=============================================================================
USER SERVICE
=============================================================================

A small CRUD service for "user" records: raw HTTP over TCP in front,
a relational table behind, nothing in between but a prefix router.

    POST   /users          create        {"name": ..., "email": ...}
    GET    /users/all      list
    GET    /users/<id>     read one
    PUT    /users/<id>     replace       {"name": ..., "email": ...}
    DELETE /users/<id>     delete

    python -m userservice          # DATABASE_URL must be set

=============================================================================
"""

__version__ = "1.0.0"

from .config import ServiceConfig
from .models import User
from .server import UserServer

__all__ = ["UserServer", "ServiceConfig", "User", "__version__"]
