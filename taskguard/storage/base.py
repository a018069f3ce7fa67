"""
Data-access interface consumed by the validation core.

Implementations provide four async primitives over named tables of dict
rows; the lookups the validators, rules and integrity scans need are built
on top of them here.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

OPEN_ITEM_STATUSES = ("pending", "in_progress", "blocked")


class DataAccess(ABC):
    """
    Abstract async data access.

    Rows are plain dicts keyed by column name. Every table has an ``id``
    column. Unknown tables behave as empty.
    """

    # =======================
    # PRIMITIVES
    # =======================

    @abstractmethod
    async def get_record(self, table: str, record_id: str) -> dict[str, Any] | None:
        """Return the row with ``id == record_id`` or None."""

    @abstractmethod
    async def find_records(self, table: str, field: str, value: Any) -> list[dict[str, Any]]:
        """Return rows whose ``field`` equals ``value``, ordered by id."""

    @abstractmethod
    async def fetch_batch(self, table: str, limit: int, offset: int = 0) -> list[dict[str, Any]]:
        """Return one page of rows ordered by id."""

    @abstractmethod
    async def count_records(self, table: str) -> int:
        """Return the number of rows in ``table``."""

    async def close(self) -> None:
        """Release any held resources."""

    # =======================
    # DERIVED LOOKUPS
    # =======================

    async def record_exists(self, table: str, record_id: str) -> bool:
        return await self.get_record(table, record_id) is not None

    async def list_exists(self, list_id: str) -> bool:
        return await self.record_exists("lists", list_id)

    async def item_exists(self, item_id: str) -> bool:
        return await self.record_exists("items", item_id)

    async def user_exists(self, user_id: str) -> bool:
        """Assignees are agents."""
        return await self.record_exists("agents", user_id)

    async def get_current_status(self, table: str, record_id: str) -> str | None:
        record = await self.get_record(table, record_id)
        if record is None:
            return None
        return record.get("status")

    async def get_list_ancestors(self, list_id: str) -> list[str]:
        """
        Return the ancestor ids of a list, nearest first.

        Stops when a parent is missing or when the chain revisits a list,
        so a corrupt cyclic hierarchy cannot loop forever.
        """
        ancestors: list[str] = []
        seen = {list_id}
        record = await self.get_record("lists", list_id)

        while record is not None:
            parent_id = record.get("parent_list_id")
            if not parent_id or parent_id in seen:
                break
            ancestors.append(parent_id)
            seen.add(parent_id)
            record = await self.get_record("lists", parent_id)

        return ancestors

    async def get_child_lists(self, list_id: str) -> list[dict[str, Any]]:
        return await self.find_records("lists", "parent_list_id", list_id)

    async def get_subtree_height(self, list_id: str) -> int:
        """
        Return how many levels of descendants hang below a list (0 for a leaf).

        Walks children breadth first and never revisits a list, so a cyclic
        hierarchy terminates.
        """
        height = 0
        seen = {list_id}
        frontier = [list_id]

        while frontier:
            next_frontier = []
            for parent_id in frontier:
                for child in await self.get_child_lists(parent_id):
                    child_id = child.get("id")
                    if child_id is not None and child_id not in seen:
                        seen.add(child_id)
                        next_frontier.append(child_id)
            if next_frontier:
                height += 1
            frontier = next_frontier

        return height

    async def get_item_dependencies(self, item_id: str) -> list[str]:
        """Return the ids stored in an item's ``dependencies`` column."""
        record = await self.get_record("items", item_id)
        if record is None:
            return []
        return list(record.get("dependencies") or [])

    async def count_open_items_assigned(self, user_id: str) -> int:
        items = await self.find_records("items", "assigned_to", user_id)
        return sum(1 for item in items if item.get("status", "pending") in OPEN_ITEM_STATUSES)

    async def iter_records(self, table: str, batch_size: int = 1000) -> AsyncIterator[list[dict[str, Any]]]:
        """
        Yield the rows of ``table`` in id-ordered pages of ``batch_size``.

        Usage:
            async for batch in data_access.iter_records("items", 500):
                ...
        """
        offset = 0
        while True:
            batch = await self.fetch_batch(table, batch_size, offset)
            if not batch:
                return
            yield batch
            if len(batch) < batch_size:
                return
            offset += len(batch)
