"""
In-memory DataAccess backed by plain dicts.

Used by tests and by callers that validate against data they already hold.
"""

import copy
from typing import Any

from taskguard.storage.base import DataAccess
from taskguard.utils.validation import validate_limit, validate_offset


class InMemoryDataAccess(DataAccess):
    """
    Tables of dict rows keyed by id.

    Rows handed out are copies, so callers cannot mutate the store through
    a returned record.
    """

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None):
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        for table, rows in (tables or {}).items():
            for row in rows:
                self.insert(table, row)

    def insert(self, table: str, row: dict[str, Any]) -> None:
        """Insert or replace a row. The row must carry an ``id``."""
        if "id" not in row:
            raise ValueError(f"Row for table '{table}' has no 'id'")
        self._tables.setdefault(table, {})[str(row["id"])] = copy.deepcopy(row)

    def update(self, table: str, record_id: str, **fields: Any) -> None:
        self._tables[table][record_id].update(fields)

    def delete(self, table: str, record_id: str) -> None:
        self._tables.get(table, {}).pop(record_id, None)

    def _sorted_rows(self, table: str) -> list[dict[str, Any]]:
        rows = self._tables.get(table, {})
        return [rows[key] for key in sorted(rows)]

    async def get_record(self, table: str, record_id: str) -> dict[str, Any] | None:
        row = self._tables.get(table, {}).get(record_id)
        return copy.deepcopy(row) if row is not None else None

    async def find_records(self, table: str, field: str, value: Any) -> list[dict[str, Any]]:
        return [copy.deepcopy(row) for row in self._sorted_rows(table) if row.get(field) == value]

    async def fetch_batch(self, table: str, limit: int, offset: int = 0) -> list[dict[str, Any]]:
        validate_limit(limit)
        validate_offset(offset)
        return copy.deepcopy(self._sorted_rows(table)[offset:offset + limit])

    async def count_records(self, table: str) -> int:
        return len(self._tables.get(table, {}))
