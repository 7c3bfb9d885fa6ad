"""
=============================================================================
USER ENTITY
=============================================================================

The one and only record shape this service knows about.

    ┌──────────────────────────────────────────────────────────────────┐
    │  users                                                           │
    ├──────────┬───────────────────┬───────────────────────────────────┤
    │  id      │ SERIAL PRIMARY KEY│ assigned by storage, never by us  │
    │  name    │ VARCHAR NOT NULL  │                                   │
    │  email   │ VARCHAR NOT NULL  │ no uniqueness, no format check    │
    └──────────┴───────────────────┴───────────────────────────────────┘

On the wire a user travels as JSON:

    read:   {"id": 7, "name": "Ann", "email": "ann@x.com"}
    write:  {"name": "Ann", "email": "ann@x.com"}

An "id" key in a write body is accepted and ignored. The id is owned by
the storage engine and is immutable once assigned.

=============================================================================
"""

import json
from dataclasses import dataclass, asdict
from typing import Any, Optional

from .errors import RequestParseError


@dataclass
class User:
    """
    A user record.

    Attributes:
        name: Display name.
        email: Contact address (free text).
        id: Storage-assigned primary key. None until the row exists.
    """

    name: str
    email: str
    id: Optional[int] = None

    def to_dict(self) -> dict:
        """Serialize with the positional column order id, name, email."""
        data = asdict(self)
        return {"id": data["id"], "name": data["name"], "email": data["email"]}

    @classmethod
    def from_dict(cls, data: Any) -> "User":
        """
        Build a User from decoded JSON.

        Only type coercion is performed: both fields must be strings.
        Emptiness and email format are not checked.

        Raises:
            RequestParseError: If data is not an object with string
                               "name" and "email" members.
        """
        if not isinstance(data, dict):
            raise RequestParseError("Invalid user body")

        name = data.get("name")
        email = data.get("email")
        if not isinstance(name, str) or not isinstance(email, str):
            raise RequestParseError("Invalid user body")

        # Client-supplied ids are ignored; storage assigns them.
        return cls(name=name, email=email)

    @classmethod
    def from_json(cls, body: str) -> "User":
        """
        Parse a request body into a User.

        Raises:
            RequestParseError: On malformed JSON or a wrong shape.
        """
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, TypeError) as e:
            raise RequestParseError("Invalid JSON body") from e
        return cls.from_dict(data)

    @classmethod
    def from_row(cls, row: Any) -> "User":
        """Build a User from a (id, name, email) result row."""
        return cls(id=row[0], name=row[1], email=row[2])
