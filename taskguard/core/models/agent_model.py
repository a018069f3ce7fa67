"""
Agent input schemas. Agents are the users items get assigned to.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .list_model import RecordId


class AgentRole(str, Enum):
    READER = "reader"
    EXECUTOR = "executor"
    PLANNER = "planner"
    ADMIN = "admin"


class AgentAction(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    EXECUTE = "execute"
    REORDER = "reorder"
    RENAME = "rename"
    STATUS = "status"
    MARK_DONE = "mark_done"
    ROLLBACK = "rollback"
    PLAN = "plan"
    TRAIN = "train"
    DEPLOY = "deploy"
    TEST = "test"
    MONITOR = "monitor"
    OPTIMIZE = "optimize"
    DEBUG = "debug"
    LOG = "log"


class AgentCreate(BaseModel):
    id: RecordId | None = None
    name: str = Field(..., min_length=1, max_length=255)
    role: AgentRole
    permissions: list[AgentAction] = Field(..., min_length=1, max_length=20)
    configuration: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    class Config:
        use_enum_values = True


class AgentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    role: AgentRole | None = None
    permissions: list[AgentAction] | None = Field(None, min_length=1, max_length=20)
    configuration: dict[str, Any] | None = None
    metadata: dict[str, Any] | None = None

    class Config:
        use_enum_values = True
