"""
Database Infrastructure Package for VoxWarp

Exports database utilities, models, and repositories.
"""

from voxwarp.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
]
