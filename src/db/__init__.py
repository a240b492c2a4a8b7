"""
Database module for the membership engine.

Exports database connection utilities.
"""

from src.db.connection import (
    build_engine,
    check_db_connection,
    close_db_connection,
    get_engine,
    get_session_maker,
    init_models,
    make_session_maker,
)

__all__ = [
    "build_engine",
    "get_engine",
    "make_session_maker",
    "get_session_maker",
    "init_models",
    "close_db_connection",
    "check_db_connection",
]
