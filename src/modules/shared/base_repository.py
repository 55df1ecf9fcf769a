"""
Base Repository Pattern

Purpose
-------
Provides a type-safe, generic repository abstraction for database operations
following SQLAlchemy 2.0 async patterns. Repositories encapsulate data access
and give every service the same query vocabulary.

Design Notes
------------
This base repository provides:
- Filtered single/multi-row reads, optionally with SELECT FOR UPDATE
- Ordered reads
- Counting utilities
- Create-if-absent inserts (`INSERT ... ON CONFLICT DO NOTHING`)
- Full structured logging

What this class does NOT do:
- Manage transactions (services/DatabaseService handle that)
- Contain business logic

Usage
-----
    from src.database.models.scoring import DayLedger
    from src.modules.shared import BaseRepository

    class DayLedgerRepository(BaseRepository[DayLedger]):
        async def find_for_server(
            self, session: AsyncSession, server_id: str
        ) -> list[DayLedger]:
            return await self.find_many_where(
                session,
                DayLedger.server_id == server_id,
            )
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite

from src.core.database.service import DatabaseService

if TYPE_CHECKING:
    from logging import Logger

    from sqlalchemy import ColumnElement
    from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class BaseRepository(Generic[T]):
    """
    Generic base repository for type-safe database operations.

    Type Parameters:
        T: The SQLAlchemy model class this repository manages
    """

    def __init__(self, model_class: Type[T], logger: Logger) -> None:
        """
        Initialize repository with model class and logger.

        Args:
            model_class: The SQLAlchemy model class
            logger: Structured logger instance
        """
        self.model_class = model_class
        self.log = logger

    async def find_one_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
    ) -> Optional[T]:
        """
        Find a single record matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE

        Returns:
            Model instance or None if not found
        """
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        result = await session.execute(stmt)
        instance = result.scalar_one_or_none()

        self.log.debug(
            f"Repository.find_one_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found": instance is not None,
                "locked": for_update,
            },
        )

        return instance

    async def find_many_where(
        self,
        session: AsyncSession,
        *conditions: ColumnElement[bool],
        for_update: bool = False,
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """
        Find multiple records matching conditions.

        Args:
            session: Database session
            *conditions: SQLAlchemy filter conditions
            for_update: If True, use SELECT FOR UPDATE
            order_by: Optional ORDER BY clauses
            limit: Optional maximum number of results

        Returns:
            List of model instances
        """
        stmt = select(self.model_class).where(*conditions)

        if for_update:
            stmt = stmt.with_for_update()

        if order_by:
            stmt = stmt.order_by(*order_by)

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        instances = list(result.scalars().all())

        self.log.debug(
            f"Repository.find_many_where: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "found_count": len(instances),
                "locked": for_update,
                "limit": limit,
            },
        )

        return instances

    async def count(
        self, session: AsyncSession, *conditions: ColumnElement[bool]
    ) -> int:
        """Count records matching conditions."""
        stmt = select(func.count()).select_from(self.model_class).where(*conditions)
        result = await session.execute(stmt)
        count = result.scalar_one()

        self.log.debug(
            f"Repository.count: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__, "count": count},
        )

        return count

    def add(self, session: AsyncSession, instance: T) -> T:
        """Add a new instance to the session (flushed on commit)."""
        session.add(instance)

        self.log.debug(
            f"Repository.add: {self.model_class.__name__}",
            extra={"model": self.model_class.__name__},
        )

        return instance

    async def insert_if_absent(
        self,
        session: AsyncSession,
        values: Dict[str, Any],
        conflict_columns: Sequence[str],
    ) -> bool:
        """
        Conditionally insert one row; a unique-key conflict leaves the
        existing row untouched.

        Args:
            session: Database session (inside a transaction)
            values: Column values for the new row
            conflict_columns: Columns of the unique constraint to test

        Returns:
            True if a row was inserted, False if one already existed
        """
        dialect = DatabaseService.dialect_name()
        insert_fn = postgresql.insert if dialect == "postgresql" else sqlite.insert

        stmt = (
            insert_fn(self.model_class)
            .values(**values)
            .on_conflict_do_nothing(index_elements=list(conflict_columns))
        )
        result = await session.execute(stmt)
        inserted = (result.rowcount or 0) > 0

        self.log.debug(
            f"Repository.insert_if_absent: {self.model_class.__name__}",
            extra={
                "model": self.model_class.__name__,
                "inserted": inserted,
                "dialect": dialect,
            },
        )

        return inserted
