"""Database utilities for the Goalify remote store."""

from .base import Base
from .session import (
    DatabaseNotConfigured,
    SessionManager,
    build_engine,
    dispose_engine,
    get_engine,
    get_session_factory,
    make_session_factory,
    session_scope,
)

__all__ = [
    "Base",
    "DatabaseNotConfigured",
    "SessionManager",
    "build_engine",
    "dispose_engine",
    "get_engine",
    "get_session_factory",
    "make_session_factory",
    "session_scope",
]
