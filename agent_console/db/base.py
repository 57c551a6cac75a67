"""
Database Base Module
Provides database session management and initialization
"""

from typing import Generator, Optional
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
import os

from agent_console.core.config import settings
from agent_console.core.logging import get_logger
from .models import Base

logger = get_logger(__name__)

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> str:
    """Get the database URL based on configuration"""
    if settings.database_url:
        return settings.database_url

    db_path = settings.sqlite_database_path
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    return f"sqlite:///{db_path}"


def _create_engine(db_url: str):
    if db_url.startswith("sqlite"):
        engine_args = {
            "connect_args": {"check_same_thread": False},
            "echo": settings.debug
        }
        # In-memory databases live on one connection
        if db_url in ("sqlite://", "sqlite:///:memory:"):
            engine_args["poolclass"] = StaticPool
        engine = create_engine(db_url, **engine_args)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        db_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        echo=settings.debug
    )


def init_database(db_url: Optional[str] = None) -> None:
    """Initialize the database engine and create tables"""
    global _engine, _SessionLocal

    db_url = db_url or get_database_url()
    logger.info("Initializing database", backend=db_url.split(":", 1)[0])

    _engine = _create_engine(db_url)
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_engine)

    Base.metadata.create_all(bind=_engine)
    logger.info("Database tables created/verified")


def reset_database(db_url: str) -> None:
    """Dispose the current engine and start over on a new URL"""
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
    init_database(db_url)


def get_engine():
    """Get the database engine, initializing if needed"""
    if _engine is None:
        init_database()
    return _engine


def get_session_factory():
    """Get the session factory, initializing if needed"""
    if _SessionLocal is None:
        init_database()
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    Dependency that provides a database session
    For use with FastAPI's Depends()
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


async def close_database() -> None:
    """Close database connections"""
    global _engine
    if _engine:
        _engine.dispose()
        logger.info("Database connections closed")
