from __future__ import annotations

from collections.abc import Generator
from contextlib import AbstractContextManager, contextmanager, nullcontext

from loguru import logger
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from config import get_settings
from mentor_core.db.models.base import Base

_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _build_engine(url: str) -> Engine:
    settings = get_settings()
    if url.startswith("sqlite") and ":memory:" in url:
        # One shared connection, otherwise every session sees an empty database
        return create_engine(
            url,
            echo=settings.log_level == "DEBUG",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=settings.log_level == "DEBUG", pool_pre_ping=True)


def configure(url: str | None = None) -> Engine:
    """(Re)bind the engine and session factory to ``url`` (defaults to settings)."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    engine = _build_engine(url or get_settings().database_url)
    _engine = engine
    _SessionLocal = _make_session_factory(engine)
    return engine


def _make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    """Get the database engine (lazy initialization)."""
    if _engine is None:
        return configure()
    return _engine


def _get_session_factory() -> sessionmaker[Session]:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = _make_session_factory(get_engine())
    return _SessionLocal


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables initialized")


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""
    session = _get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:  # Intentionally broad - rollback on any error before re-raising
        session.rollback()
        raise
    finally:
        session.close()


def get_session() -> Session:
    """Open a new session. Caller owns commit/close."""
    return _get_session_factory()()


def use_session(session: Session | None) -> AbstractContextManager[Session]:
    """
    Context manager over an injected session or a fresh transactional scope.

    An injected session is yielded as-is; its owner commits and closes it.
    """
    if session is not None:
        return nullcontext(session)
    return session_scope()
