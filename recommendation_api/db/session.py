"""
Database session management for SQLAlchemy 2.0.

This module exposes:
- get_engine: lazily created global SQLAlchemy engine
- get_session_factory: sessionmaker bound to that engine
"""

from functools import lru_cache

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker

from recommendation_api.core.config import get_settings


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Create the engine for DATABASE_URL on first use."""
    url = get_settings().DATABASE_URL
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    # Pool settings tuned for typical web workloads; adjust as necessary.
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


# PUBLIC_INTERFACE
@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)

