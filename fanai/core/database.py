"""
Database Configuration
SQLAlchemy engine and session management.
Supports both SQLite (local dev) and PostgreSQL (production).
"""

import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def make_engine(database_url: str):
    """Create an engine with settings appropriate for the backend."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},  # Needed for SQLite
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def create_session_factory(database_url: str) -> sessionmaker:
    """Build a session factory bound to its own engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=make_engine(database_url))


def init_db(bind):
    """Initialize database tables on the given engine."""
    from fanai.models import User, Generation, Campaign  # noqa
    try:
        Base.metadata.create_all(bind=bind)
    except Exception as e:
        # In production, tables may already exist or filesystem may be read-only
        logger.warning(f"[Database] Could not create tables: {e}")
        logger.info("[Database] Continuing with existing database...")
