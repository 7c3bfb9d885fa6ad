"""Request handlers."""

from .users import UserHandlers, parse_id

__all__ = ["UserHandlers", "parse_id"]
