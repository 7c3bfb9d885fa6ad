"""Relational storage for users (SQLAlchemy Core)."""

from .gateway import UserGateway, create_db_engine, metadata, normalize_url, users_table

__all__ = ["UserGateway", "create_db_engine", "metadata", "normalize_url", "users_table"]
