"""
List input schemas (create/update payloads) and list enums.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, Field

ID_PATTERN = r"^[a-zA-Z0-9_-]+$"

RecordId = Annotated[str, Field(min_length=1, max_length=255, pattern=ID_PATTERN)]


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ListStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    DELETED = "deleted"


class ListCreate(BaseModel):
    """
    Payload for creating a list.

    Attributes:
        id: Caller-assigned id, if any
        title: 1-500 characters
        description: Up to 2000 characters
        parent_list_id: Parent list for nested lists
        priority: Defaults to medium
        metadata: Free-form metadata
    """

    id: RecordId | None = None
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    parent_list_id: RecordId | None = None
    priority: Priority = Priority.MEDIUM
    metadata: dict[str, Any] | None = None

    class Config:
        use_enum_values = True
        json_schema_extra = {
            "example": {
                "title": "Sprint 14",
                "description": "Backend work for sprint 14",
                "parent_list_id": "L1",
                "priority": "high",
            }
        }


class ListUpdate(BaseModel):
    """Payload for updating a list. Only the fields present are validated."""

    title: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = Field(None, max_length=2000)
    parent_list_id: RecordId | None = None
    priority: Priority | None = None
    status: ListStatus | None = None
    completed_at: datetime | None = None
    metadata: dict[str, Any] | None = None

    class Config:
        use_enum_values = True
