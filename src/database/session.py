"""
Database Session Management

Handles connection pooling, session lifecycle, and database initialization.
Designed for both PostgreSQL (production) and SQLite (development, tests).
"""

import os
import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool

from .models import Base

logger = logging.getLogger(__name__)

# =============================================================================
# DATABASE URL CONFIGURATION
# =============================================================================

def _fix_postgres_scheme(url: str) -> str:
    # Hosted PostgreSQL URLs use postgres:// but SQLAlchemy needs postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_url() -> str:
    """
    Get database URL from environment.

    Priority:
    1. DATABASE_URL
    2. POSTGRES_URL (alternative)
    3. SQLite fallback for local development
    """
    url = os.getenv("DATABASE_URL")
    if url:
        return _fix_postgres_scheme(url)

    url = os.getenv("POSTGRES_URL")
    if url:
        return _fix_postgres_scheme(url)

    sqlite_path = os.getenv("SQLITE_PATH", "seo_audit_dev.db")
    return f"sqlite:///{sqlite_path}"


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


# =============================================================================
# ENGINE CONFIGURATION
# =============================================================================

def create_db_engine():
    """
    Create database engine with appropriate settings.

    PostgreSQL: Connection pooling with pre-ping
    SQLite: Foreign key enforcement, shared in-memory connection
    """
    url = get_database_url()
    echo = os.getenv("SQL_DEBUG", "false").lower() == "true"

    if is_postgres_url(url):
        engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=5,                # Base connections
            max_overflow=10,            # Additional connections under load
            pool_timeout=30,            # Wait for connection
            pool_recycle=1800,          # Recycle connections after 30 min
            pool_pre_ping=True,         # Verify connections before use
            echo=echo,
        )
        logger.info("Created PostgreSQL engine with connection pooling")
        return engine

    engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "echo": echo,
    }
    # In-memory databases vanish per connection unless a single one is shared
    if url in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **engine_kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    logger.info(f"Created SQLite engine ({url})")
    return engine


# Global engine and session factory (lazy initialization)
_engine = None
_SessionLocal = None


def get_engine():
    """Get or create the database engine."""
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def reset_engine() -> None:
    """
    Dispose the current engine and forget the session factory.

    The next get_engine() call re-reads DATABASE_URL.
    """
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


# =============================================================================
# SESSION MANAGEMENT
# =============================================================================

def get_session_factory():
    """Get or create session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,  # Don't expire objects after commit
        )
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI-style dependency for database sessions.

    Usage:
        @router.get("/items")
        def get_items(db: Session = Depends(get_db)):
            return db.query(Item).all()
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on success, rolls back and re-raises on error.

    Usage:
        with get_db_context() as db:
            db.query(Item).all()
    """
    SessionLocal = get_session_factory()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_db(drop_all: bool = False) -> None:
    """
    Create all tables.

    Args:
        drop_all: If True, drop all tables first (USE WITH CAUTION!)
    """
    # Registers the users and auth_tokens tables on the shared metadata
    import src.auth.models  # noqa: F401

    engine = get_engine()

    if drop_all:
        logger.warning("Dropping all database tables!")
        Base.metadata.drop_all(bind=engine)

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")


def get_db_info() -> dict:
    """
    Get database diagnostic information.

    The password portion of the URL is masked.
    """
    url = get_database_url()
    is_postgres = is_postgres_url(url)

    safe_url = url
    if "@" in url:
        parts = url.split("@")
        safe_url = parts[0].rsplit(":", 1)[0] + ":***@" + parts[1]

    info = {
        "database_type": "postgresql" if is_postgres else "sqlite",
        "connection_url": safe_url,
        "connected": False,
        "table_count": 0,
        "tables": [],
    }

    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
            info["connected"] = True

            if is_postgres:
                result = conn.execute(text("""
                    SELECT table_name FROM information_schema.tables
                    WHERE table_schema = 'public' ORDER BY table_name
                """))
            else:
                result = conn.execute(text("""
                    SELECT name FROM sqlite_master WHERE type='table' ORDER BY name
                """))
            info["tables"] = [row[0] for row in result]
            info["table_count"] = len(info["tables"])

    except Exception as e:
        info["error"] = str(e)

    return info


def check_db_connection() -> bool:
    """
    Check if database connection is working.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection verified")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


# =============================================================================
# TRANSACTION HELPERS
# =============================================================================

@contextmanager
def transaction(db: Session):
    """
    Explicit transaction context manager.

    Usage:
        with transaction(db):
            db.add(item1)
            db.add(item2)
            # Commits at end, rollback on exception
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
