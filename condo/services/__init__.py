"""Database connection and session management."""

import os
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from condo.services.config import DEFAULT_DATABASE_URL

# Get database URL from environment or use SQLite default
DATABASE_URL = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def build_engine(database_url: str) -> Engine:
    """Create an engine (SQLite uses StaticPool so in-memory databases survive across sessions)."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


engine = build_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def session_factory(database_url: str) -> sessionmaker:
    """Session factory for database_url; the module engine is shared when the URL matches."""
    if database_url == DATABASE_URL:
        return SessionLocal
    return sessionmaker(autocommit=False, autoflush=False, bind=build_engine(database_url))


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


__all__ = [
    "engine",
    "SessionLocal",
    "build_engine",
    "get_db",
    "session_factory",
]
