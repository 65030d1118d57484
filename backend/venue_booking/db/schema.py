"""
Schema tolerance for the reservation store.

Older deployments grew their tables by hand, so columns such as `status`,
`event_type` or `booking_id` may be missing. Two mechanisms keep the store in
line with the models:

- `ensure_schema()` runs at startup: creates missing tables, adds missing
  columns and seeds the venue row.
- `with_schema_repair()` wraps a store operation: if it fails because a
  column or table is absent, the schema is repaired and the operation is
  retried exactly once. A failed repair surfaces as SchemaDriftError.

Added columns get the model's literal server default when it has one and are
otherwise created nullable, so the ALTER works on tables that already hold rows.
"""

import re
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy import Column, Table, inspect, insert, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from venue_booking.core.config import get_settings
from venue_booking.core.exceptions import SchemaDriftError
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import schema_repairs
from venue_booking.db.base import Base
from venue_booking.models.venue import VENUE_ID, Venue

logger = get_logger(__name__)
settings = get_settings()

T = TypeVar("T")

_MISSING_PATTERNS = [
    # SQLite
    re.compile(r"no such column: (?:\w+\.)?(\w+)"),
    re.compile(r"has no column named (\w+)"),
    re.compile(r"no such table: (\w+)"),
    # PostgreSQL
    re.compile(r'column "?(?:\w+\.)?(\w+)"? (?:of relation "\w+" )?does not exist'),
    re.compile(r'relation "(\w+)" does not exist'),
    # MySQL
    re.compile(r"Unknown column '(?:\w+\.)?(\w+)'"),
    re.compile(r"Table '(?:\w+\.)?(\w+)' doesn't exist"),
]


def missing_schema_element(exc: BaseException) -> Optional[str]:
    """Name of the missing column/table if `exc` is a schema drift failure."""
    if not isinstance(exc, DBAPIError):
        return None
    message = str(exc.orig) if exc.orig is not None else str(exc)
    for pattern in _MISSING_PATTERNS:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def _column_ddl(connection: Connection, table: Table, column: Column) -> str:
    dialect = connection.dialect
    preparer = dialect.identifier_preparer
    ddl = (
        f"ALTER TABLE {preparer.format_table(table)} "
        f"ADD COLUMN {preparer.format_column(column)} {column.type.compile(dialect=dialect)}"
    )
    default = getattr(column.server_default, "arg", None)
    if isinstance(default, str):
        escaped = default.replace("'", "''")
        ddl += f" DEFAULT '{escaped}'"
        if not column.nullable:
            ddl += " NOT NULL"
    return ddl


def repair_schema(connection: Connection) -> list[str]:
    """Create absent tables and add absent columns. Returns what was changed."""
    before = set(inspect(connection).get_table_names())
    Base.metadata.create_all(connection)
    changes = [f"table {name}" for name in Base.metadata.tables if name not in before]

    inspector = inspect(connection)
    for table in Base.metadata.sorted_tables:
        if table.name not in before:
            continue
        present = {col["name"] for col in inspector.get_columns(table.name)}
        for column in table.columns:
            if column.name in present or column.primary_key:
                continue
            connection.exec_driver_sql(_column_ddl(connection, table, column))
            changes.append(f"column {table.name}.{column.name}")

    if changes:
        schema_repairs.inc(len(changes))
        logger.warning("schema_repaired", changes=changes)
    return changes


async def ensure_schema(engine: AsyncEngine) -> list[str]:
    """Bring the store up to the model schema and seed the venue row."""
    async with engine.begin() as conn:
        changes = await conn.run_sync(repair_schema)
        existing = await conn.execute(select(Venue.id).where(Venue.id == VENUE_ID))
        if existing.scalar_one_or_none() is None:
            await conn.execute(insert(Venue).values(id=VENUE_ID, name=settings.VENUE_NAME, version=1))
            logger.info("venue_seeded", venue_id=VENUE_ID, name=settings.VENUE_NAME)
    return changes


async def with_schema_repair(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    label: str = "store_operation",
) -> T:
    """Run `operation`; on schema drift repair the store and retry once."""
    try:
        return await operation()
    except DBAPIError as exc:
        missing = missing_schema_element(exc)
        if missing is None or not settings.SCHEMA_AUTO_REPAIR:
            raise
        logger.warning("schema_drift_detected", operation=label, missing=missing, error=str(exc.orig))

    await db.rollback()
    try:
        changes = await db.run_sync(lambda session: repair_schema(session.connection()))
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.error("schema_repair_failed", operation=label, missing=missing, error=str(exc))
        raise SchemaDriftError(f"Schema element '{missing}' is missing and could not be added.", error=exc)

    if not changes:
        raise SchemaDriftError(f"Schema element '{missing}' is missing and no repair was possible.")

    try:
        return await operation()
    except DBAPIError as exc:
        if missing_schema_element(exc) is not None:
            raise SchemaDriftError(f"Schema is still missing '{missing_schema_element(exc)}' after repair.", error=exc)
        raise
