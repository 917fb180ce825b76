"""
Database configuration and session management
"""
import logging
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Create base class for models
Base = declarative_base()


def make_engine(url: str = DATABASE_URL) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    kwargs = {"future": True}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    # rows handed back by repositories stay readable after commit
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Initialize database tables"""
    # Make sure all models are imported so Base.metadata is populated
    import optimizer.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully", extra={"component": "db"})


@contextmanager
def session_scope(session_factory: sessionmaker):
    s = session_factory()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()


# Dependency to get database session
def get_db(request: Request):
    db = request.app.state.services.session_factory()
    try:
        yield db
    finally:
        db.close()
