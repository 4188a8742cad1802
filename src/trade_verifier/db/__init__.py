"""Database engine, session factory, and ORM tables."""

from trade_verifier.db.engine import (
    dispose_engine,
    get_engine,
    get_session,
    init_engine,
    session_scope,
)

__all__ = ["dispose_engine", "get_engine", "get_session", "init_engine", "session_scope"]
