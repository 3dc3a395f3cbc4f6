"""
Database Configuration Module

This module sets up SQLAlchemy 2.0 for the Grimoire API.

We use SYNCHRONOUS SQLAlchemy with the "session per request" pattern:
1. Request arrives -> create a new session
2. Use session for all database operations in that request
3. Commit on success, rollback on failure
4. Close session when request ends

SQLite is the default for local development; PostgreSQL is used in
production by setting DATABASE_URL.
"""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from grimoire.config import get_settings

# Get settings instance
settings = get_settings()


# =============================================================================
# Database Engine
# =============================================================================
def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine with options suited to the database backend.

    - SQLite: allow use across threads (FastAPI runs sync routes in a
      threadpool); in-memory databases share one connection through
      StaticPool, otherwise every connection would see an empty database.
    - Server databases: connection pool sizing and pre-ping.
    """
    if database_url.startswith("sqlite"):
        options = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            options["poolclass"] = StaticPool
        return create_engine(database_url, echo=echo, **options)

    return create_engine(
        database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,  # Verify connections are alive before using
        echo=echo,
    )


engine = build_engine(settings.database_url, echo=settings.debug)


# =============================================================================
# Session Factory
# =============================================================================
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


# =============================================================================
# Base Model Class
# =============================================================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    All models inherit from this class so that Base.metadata knows about
    every table when create_tables() runs.
    """
    pass


# =============================================================================
# Dependency Injection
# =============================================================================
def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Code before yield creates the session, code after yield closes it even
    if the route raised.

    Yields:
        SQLAlchemy Session instance
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# =============================================================================
# Utility Functions
# =============================================================================
def create_tables() -> None:
    """
    Create all database tables that do not exist yet.

    Called from the application lifespan on startup.
    """
    # Import models so their tables are registered on Base.metadata
    import grimoire.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables() -> None:
    """
    Drop all database tables.

    DANGER: This deletes all data! Only use in development or tests.
    """
    Base.metadata.drop_all(bind=engine)
