"""
PostgreSQL DataAccess over an AsyncDatabaseConnectionPool.

Table and column names are checked with ``sanitize_sql_identifier`` and
composed with ``psycopg.sql`` so they are always quoted identifiers.
"""

from typing import Any

from psycopg import sql

from taskguard.storage.base import DataAccess
from taskguard.storage.connection import AsyncDatabaseConnectionPool
from taskguard.utils.validation import (
    sanitize_sql_identifier,
    validate_limit,
    validate_offset,
)


class PostgresDataAccess(DataAccess):
    """
    DataAccess reading directly from the application's tables.

    Tables missing from the database are reported as empty, matching the
    in-memory behaviour.
    """

    def __init__(self, pool: AsyncDatabaseConnectionPool, schema: str = "public"):
        self.pool = pool
        self.schema = sanitize_sql_identifier(schema, "schema")
        self._known_tables: set[str] | None = None

    async def _table_exists(self, table: str) -> bool:
        if self._known_tables is None:
            rows = await self.pool.execute_query(
                "SELECT table_name FROM information_schema.tables WHERE table_schema = %s",
                (self.schema,),
            )
            self._known_tables = {row["table_name"] for row in rows}
        return table in self._known_tables

    def _table(self, table: str) -> sql.Identifier:
        return sql.Identifier(self.schema, sanitize_sql_identifier(table, "table"))

    async def get_record(self, table: str, record_id: str) -> dict[str, Any] | None:
        if not await self._table_exists(table):
            return None
        query = sql.SQL("SELECT * FROM {} WHERE id = %s LIMIT 1").format(self._table(table))
        rows = await self.pool.execute_query(query, (record_id,))
        return rows[0] if rows else None

    async def find_records(self, table: str, field: str, value: Any) -> list[dict[str, Any]]:
        if not await self._table_exists(table):
            return []
        # NULL never compares equal with "="
        query = sql.SQL("SELECT * FROM {} WHERE {} IS NOT DISTINCT FROM %s ORDER BY id").format(
            self._table(table),
            sql.Identifier(sanitize_sql_identifier(field, "field")),
        )
        return await self.pool.execute_query(query, (value,))

    async def fetch_batch(self, table: str, limit: int, offset: int = 0) -> list[dict[str, Any]]:
        validate_limit(limit)
        validate_offset(offset)
        if not await self._table_exists(table):
            return []
        query = sql.SQL("SELECT * FROM {} ORDER BY id LIMIT %s OFFSET %s").format(self._table(table))
        return await self.pool.execute_query(query, (limit, offset))

    async def count_records(self, table: str) -> int:
        if not await self._table_exists(table):
            return 0
        query = sql.SQL("SELECT COUNT(*) AS count FROM {}").format(self._table(table))
        rows = await self.pool.execute_query(query)
        return int(rows[0]["count"])

    async def get_list_ancestors(self, list_id: str) -> list[str]:
        """Walk the hierarchy in one recursive query; cycle-safe via the path array."""
        if not await self._table_exists("lists"):
            return []
        query = sql.SQL(
            """
            WITH RECURSIVE chain(id, parent_list_id, depth, path) AS (
                SELECT id, parent_list_id, 0, ARRAY[id::text]
                FROM {lists} WHERE id = %s
                UNION ALL
                SELECT l.id, l.parent_list_id, c.depth + 1, c.path || l.id::text
                FROM {lists} l JOIN chain c ON l.id = c.parent_list_id
                WHERE NOT l.id::text = ANY(c.path)
            )
            SELECT id FROM chain WHERE depth > 0 ORDER BY depth
            """
        ).format(lists=self._table("lists"))
        rows = await self.pool.execute_query(query, (list_id,))
        return [str(row["id"]) for row in rows]

    async def get_item_dependencies(self, item_id: str) -> list[str]:
        """Union of the ``items.dependencies`` column and the ``item_dependencies`` table."""
        dependencies = await super().get_item_dependencies(item_id)
        if await self._table_exists("item_dependencies"):
            rows = await self.find_records("item_dependencies", "item_id", item_id)
            for row in rows:
                target = str(row["depends_on_item_id"])
                if target not in dependencies:
                    dependencies.append(target)
        return dependencies

    async def close(self) -> None:
        await self.pool.close()
