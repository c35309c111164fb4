"""
Utility to create the library snapshot tables from SQLAlchemy metadata.

Note: In production use proper migration tooling (e.g., Alembic).
"""

from typing import Optional

from sqlalchemy import Engine

from recommendation_api.db.models import Base
from recommendation_api.db.session import get_engine


# PUBLIC_INTERFACE
def create_all_tables(engine: Optional[Engine] = None) -> None:
    """Create all tables if they do not exist yet (SQLAlchemy no-ops existing ones)."""
    Base.metadata.create_all(bind=engine or get_engine())
