"""Database-agnostic type definitions for SQLAlchemy models.

The catalog runs on PostgreSQL in production and on SQLite for local
development and tests, so models use these instead of the postgresql
dialect types.
"""
from sqlalchemy import JSON, Uuid

# JSONB is PostgreSQL-specific, JSON works with both SQLite and PostgreSQL
JSONType = JSON

# Native UUID on PostgreSQL, CHAR(32) on SQLite
UUIDType = Uuid
