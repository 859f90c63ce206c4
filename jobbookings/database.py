"""
Database schema and connection management.

Uses SQLAlchemy for booking storage. SQLite by default, PostgreSQL via DATABASE_URL.
The engine is created lazily on first use and the schema is ensured once per process.
"""

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, event, inspect
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .env import DEFAULT_DATABASE_URL
from .logger import get_logger

Base = declarative_base()

TABLE_NAME = "job_bookings"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobBooking(Base):
    """One booked job on a date."""

    __tablename__ = TABLE_NAME

    id = Column(String, primary_key=True)
    date_key = Column(String, nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)  # order within the date group
    job = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


_lock = threading.Lock()
_database_url: Optional[str] = None
_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def _sqlite_immediate_transactions(engine: Engine) -> None:
    """Start every SQLite transaction with BEGIN IMMEDIATE so writers serialize."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # let SQLAlchemy emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _create_engine(database_url: str) -> Engine:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(database_url, future=True, pool_pre_ping=True)

    if url.database and url.database != ":memory:":
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        engine = create_engine(
            database_url,
            future=True,
            connect_args={"timeout": 30, "check_same_thread": False},
        )
    else:
        engine = create_engine(
            database_url,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    _sqlite_immediate_transactions(engine)
    return engine


def ensure_schema(engine: Engine) -> None:
    """Create the bookings table if it does not exist. Safe to call concurrently."""
    try:
        Base.metadata.create_all(engine)
    except SQLAlchemyError:
        # another process created it between the check and the CREATE
        if not inspect(engine).has_table(TABLE_NAME):
            raise


def configure(database_url: Optional[str] = None) -> None:
    """
    Select the database used by get_engine().

    Args:
        database_url: SQLAlchemy URL; falls back to the default SQLite file
    """
    global _database_url
    url = database_url or DEFAULT_DATABASE_URL
    with _lock:
        if url == _database_url:
            return
        _dispose_locked()
        _database_url = url


def get_engine() -> Engine:
    """Return the shared engine, creating it and ensuring the schema on first use."""
    global _engine, _SessionLocal, _database_url

    if _engine is not None:
        return _engine

    with _lock:
        if _engine is None:
            url = _database_url or DEFAULT_DATABASE_URL
            engine = _create_engine(url)
            ensure_schema(engine)
            get_logger().debug("Database initialized", backend=engine.dialect.name)
            _database_url = url
            _SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
            _engine = engine
    return _engine


def init_database(database_url: Optional[str] = None) -> Engine:
    """
    Initialize database and create tables.

    Args:
        database_url: Optional SQLAlchemy URL override

    Returns:
        The shared engine
    """
    if database_url is not None:
        configure(database_url)
    return get_engine()


def get_session() -> Session:
    """
    Get database session.

    Returns:
        SQLAlchemy session bound to the shared engine
    """
    get_engine()
    return _SessionLocal()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """One transaction. Commits on success, rolls back on error."""
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _dispose_locked() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def dispose_engine() -> None:
    """Drop the shared engine. The next call to get_engine() reconnects."""
    global _database_url
    with _lock:
        _dispose_locked()
        _database_url = None
