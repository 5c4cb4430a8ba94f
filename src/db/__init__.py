"""Database module - async MySQL engine, session management and unit of work."""

from src.db.engine import (
    async_session_factory,
    close_db,
    engine,
    get_db,
    init_db,
)
from src.db.unit_of_work import UnitOfWork

__all__ = [
    "engine",
    "async_session_factory",
    "init_db",
    "close_db",
    "get_db",
    "UnitOfWork",
]
