"""Database connection and session management."""

from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import DateTime, Table
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from statuspulse.core.config import get_settings

settings = get_settings()

# Create async engine
engine_kwargs = {"echo": settings.debug}

if "postgresql" in settings.database_url:
    engine_kwargs.update({
        "pool_size": settings.database_pool_size,
        "max_overflow": settings.database_max_overflow,
        "pool_pre_ping": True,
    })

engine = create_async_engine(
    settings.database_url,
    **engine_kwargs
)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""
    pass


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetime.

    SQLite drops tzinfo on the way in and out, so values are normalised to
    naive UTC when bound and re-tagged as UTC when loaded. Comparisons in
    Python and in SQL then behave the same on SQLite and PostgreSQL.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dialect_insert(session: AsyncSession, table: Table):
    dialect = session.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite_insert(table)
    if dialect == "postgresql":
        return postgresql_insert(table)
    raise NotImplementedError(f"Conflict-aware inserts are not supported on dialect '{dialect}'")


def insert_ignore(
    session: AsyncSession,
    table: Table,
    values: Mapping[str, Any],
    conflict_columns: Iterable[str],
):
    """
    Build an INSERT that silently does nothing on a uniqueness conflict.

    The caller checks ``result.rowcount`` to learn whether the row was new.
    Only SQLite and PostgreSQL are supported.
    """
    stmt = _dialect_insert(session, table)
    return stmt.values(**values).on_conflict_do_nothing(index_elements=list(conflict_columns))


def upsert(
    session: AsyncSession,
    table: Table,
    values: Mapping[str, Any],
    conflict_columns: Iterable[str],
    update_columns: Optional[Iterable[str]] = None,
    where=None,
):
    """
    Build an INSERT ... ON CONFLICT DO UPDATE.

    ``update_columns`` defaults to every inserted column outside the conflict
    key. With ``where`` the update only happens when the condition holds
    against the existing row; ``result.rowcount`` is 0 when it does not.
    """
    conflict_columns = list(conflict_columns)
    if update_columns is None:
        update_columns = [c for c in values if c not in conflict_columns]
    stmt = _dialect_insert(session, table).values(**values)
    return stmt.on_conflict_do_update(
        index_elements=conflict_columns,
        set_={c: stmt.excluded[c] for c in update_columns},
        where=where,
    )
