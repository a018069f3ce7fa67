"""
AgentValidator - schema and name uniqueness for agents.
"""

from typing import Any

from taskguard.core.models import (
    AgentCreate,
    AgentUpdate,
    ValidationContext,
    ValidationErrorCode,
    ValidationResult,
)
from taskguard.storage.base import DataAccess

from .base_validator import BaseModelValidator, ConstraintType, ModelConstraint


class AgentValidator(BaseModelValidator):
    """Agents only carry a uniqueness constraint on ``name``."""

    model_name = "agent"
    table = "agents"
    create_schema = AgentCreate
    update_schema = AgentUpdate

    def __init__(self, data_access: DataAccess):
        super().__init__(data_access)
        self.add_constraint(ModelConstraint("unique_agent_name", ConstraintType.UNIQUE, self._unique_agent_name))

    async def _unique_agent_name(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        name = data.get("name")
        if not name:
            return result

        own_id = context.record_id or data.get("id")
        for agent in await self.data_access.find_records(self.table, "name", name):
            if agent.get("id") != own_id:
                result.add_error(
                    "name",
                    ValidationErrorCode.DUPLICATE_VALUE,
                    f"An agent named '{name}' already exists",
                    name=name,
                    existing_agent_id=agent.get("id"),
                )
                break
        return result
