"""MySQL source implementation."""

from __future__ import annotations

from typing import Any, AsyncGenerator, Dict

from sqlalchemy import DateTime, column, or_, select, table
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import Select

from mysql2mongo.core.logging import get_logger
from mysql2mongo.schemas.tables import TableSpec
from mysql2mongo.schemas.window import RunWindow
from .base import RowSource

log = get_logger("ingestion.mysql")


def build_select(spec: TableSpec, window: RunWindow) -> Select:
    """Projection of the primary key and configured columns.

    A bounded window keeps rows whose insert OR update timestamp falls in
    [start, end], both ends inclusive. An unbounded window adds no WHERE.
    """
    source_table = table(spec.name, *(column(name) for name in spec.projection))
    stmt = select(*(source_table.c[name] for name in spec.projection))

    if window.is_bounded:
        inserted = column(spec.insert_date_column, DateTime)
        updated = column(spec.update_date_column, DateTime)
        stmt = stmt.where(
            or_(
                inserted.between(window.start, window.end),
                updated.between(window.start, window.end),
            )
        )
    return stmt


class MySQLSource(RowSource):
    """Streams rows through a server-side cursor on an async SQLAlchemy engine."""

    name = "mysql"

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    async def stream(self, statement: Select) -> AsyncGenerator[Dict[str, Any], None]:
        async with self.engine.connect() as conn:
            result = await conn.stream(statement)
            exhausted = False
            try:
                async for row in result.mappings():
                    yield dict(row)
                exhausted = True
            finally:
                if exhausted:
                    await result.close()
                else:
                    # Closing an unread server-side cursor fetches the rest of the table
                    log.debug("Stream closed early; invalidating source connection")
                    await conn.invalidate()
