"""
Item input schemas (create/update payloads) and the item status enum.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field

from .list_model import Priority, RecordId

Tag = Annotated[str, Field(max_length=50)]

# One week, in minutes
MAX_DURATION_MINUTES = 10080


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    BLOCKED = "blocked"


class ItemCreate(BaseModel):
    """
    Payload for creating an item.

    Attributes:
        list_id: Owning list (required)
        title: 1-500 characters
        due_date: ISO 8601 datetime
        estimated_duration: Minutes, 1-10080
        tags: Up to 20 tags of at most 50 characters
        dependencies: Up to 10 item ids this item depends on
        assigned_to: Agent the item is assigned to
    """

    id: RecordId | None = None
    list_id: RecordId
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    priority: Priority = Priority.MEDIUM
    due_date: datetime | None = None
    estimated_duration: int | None = Field(None, ge=1, le=MAX_DURATION_MINUTES)
    tags: list[Tag] | None = Field(None, max_length=20)
    dependencies: list[RecordId] | None = Field(None, max_length=10)
    assigned_to: RecordId | None = None
    metadata: dict[str, Any] | None = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "list_id": "L1",
                "title": "Write migration",
                "priority": "medium",
                "due_date": "2026-11-01T09:00:00Z",
                "estimated_duration": 90,
                "tags": ["db"],
                "dependencies": ["I1"],
                "assigned_to": "agent-7",
            }
        }


class ItemUpdate(BaseModel):
    """Payload for updating an item. Only the fields present are validated."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    priority: Priority | None = None
    status: ItemStatus | None = None
    due_date: datetime | None = None
    estimated_duration: int | None = Field(None, ge=1, le=MAX_DURATION_MINUTES)
    actual_duration: int | None = Field(None, ge=1, le=MAX_DURATION_MINUTES)
    tags: list[Tag] | None = Field(None, max_length=20)
    dependencies: list[RecordId] | None = Field(None, max_length=10)
    assigned_to: RecordId | None = None
    completed_at: datetime | None = None
    metadata: dict[str, Any] | None = None

    class Config:
        use_enum_values = True
