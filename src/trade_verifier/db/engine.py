"""Process-wide engine and session factory."""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def normalise_url(url: str) -> str:
    """Pin plain ``postgresql://`` URLs to the psycopg 3 driver."""
    parsed = make_url(url)
    if parsed.drivername == "postgresql":
        parsed = parsed.set(drivername="postgresql+psycopg")
    return parsed.render_as_string(hide_password=False)


def init_engine(url: str, **kwargs) -> Engine:
    """Create (or replace) the engine and its session factory."""
    global _engine, _SessionLocal
    dispose_engine()
    url = normalise_url(url)
    if url.startswith("postgresql"):
        kwargs.setdefault("pool_pre_ping", True)
    _engine = create_engine(url, **kwargs)
    _SessionLocal = sessionmaker(bind=_engine, expire_on_commit=False)
    return _engine


def dispose_engine() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Database engine not initialised; call init_engine() first")
    return _engine


def _factory() -> sessionmaker[Session]:
    if _SessionLocal is None:
        raise RuntimeError("Database engine not initialised; call init_engine() first")
    return _SessionLocal


@contextmanager
def session_scope() -> Iterator[Session]:
    """Session for one unit of work; rolled back if the block raises."""
    session = _factory()()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Generator[Session, None, None]:
    """Generator form of :func:`session_scope` for dependency injection."""
    with session_scope() as session:
        yield session
