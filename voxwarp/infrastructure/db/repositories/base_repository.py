"""
Base Repository for VoxWarp

Session-scoped async repository base.
Concrete repositories share the caller's session, so several repository
writes issued inside one `get_session_context()` block commit or roll
back together.
"""

from typing import Generic, Type, TypeVar

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel


# Type variable for generic repository
ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic async repository bound to one session.

    Args:
        model: The SQLModel class to operate on
        session: Async database session
    """

    def __init__(self, model: Type[ModelType], session: AsyncSession):
        self._model = model
        self._session = session

    def _insert(self):
        """
        Dialect-specific INSERT supporting ON CONFLICT clauses.

        PostgreSQL in production, SQLite locally and in tests; both accept
        on_conflict_do_update / on_conflict_do_nothing with the same
        arguments.
        """
        dialect = self._session.get_bind().dialect.name
        if dialect == "sqlite":
            return sqlite_insert(self._model)
        return pg_insert(self._model)
