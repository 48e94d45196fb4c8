"""Relational persistence: schema, engine and sessions."""

from .models import Base, UserRow, PhoneVerificationTokenRow, RefreshTokenRow
from .session import create_db_engine, create_session_factory, create_schema

__all__ = [
    "Base",
    "UserRow",
    "PhoneVerificationTokenRow",
    "RefreshTokenRow",
    "create_db_engine",
    "create_session_factory",
    "create_schema",
]
