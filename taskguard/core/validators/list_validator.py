"""
ListValidator - schema, constraints and business rules for lists.
"""

from typing import Any

from taskguard.core.models import (
    ListCreate,
    ListUpdate,
    ValidationContext,
    ValidationErrorCode,
    ValidationResult,
    WarningCode,
)
from taskguard.storage.base import DataAccess

from .base_validator import BaseModelValidator, ConstraintType, ModelConstraint

LIST_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "active": {"completed", "archived", "deleted"},
    "completed": {"active", "archived", "deleted"},
    "archived": {"active", "deleted"},
    "deleted": set(),
}

# Fraction of the maximum depth at which an approaching-limit warning is raised
DEPTH_WARNING_RATIO = 0.8


class ListValidator(BaseModelValidator):
    """
    Validates list payloads.

    Constraints:
    - parent_list_exists: the parent list must exist
    - no_circular_reference: a list cannot become its own ancestor
    - unique_title_within_parent: titles are unique among siblings

    Business rules:
    - max_nesting_depth: error beyond ``max_depth`` levels, warning from 80%
    - valid_status_transition: follows LIST_STATUS_TRANSITIONS
    - completion_date_consistency: completed_at is set iff status is completed
    """

    model_name = "list"
    table = "lists"
    create_schema = ListCreate
    update_schema = ListUpdate

    def __init__(self, data_access: DataAccess, max_depth: int = 5):
        super().__init__(data_access)
        self.max_depth = max_depth

        self.add_constraint(ModelConstraint("parent_list_exists", ConstraintType.FOREIGN_KEY, self._parent_list_exists))
        self.add_constraint(ModelConstraint("no_circular_reference", ConstraintType.CHECK, self._no_circular_reference))
        self.add_constraint(
            ModelConstraint("unique_title_within_parent", ConstraintType.UNIQUE, self._unique_title_within_parent)
        )

        self.add_business_rule(ModelConstraint("max_nesting_depth", ConstraintType.BUSINESS_RULE, self._max_nesting_depth))
        self.add_business_rule(
            ModelConstraint("valid_status_transition", ConstraintType.BUSINESS_RULE, self._valid_status_transition)
        )
        self.add_business_rule(
            ModelConstraint("completion_date_consistency", ConstraintType.BUSINESS_RULE, self._completion_date_consistency)
        )

    def nesting_level(self, ancestors_of_parent: list[str]) -> int:
        """Level a list would sit at under a parent with these ancestors (root lists are level 1)."""
        return len(ancestors_of_parent) + 2

    # =======================
    # CONSTRAINTS
    # =======================

    async def _parent_list_exists(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        parent_id = data.get("parent_list_id")
        if parent_id and not await self.data_access.list_exists(parent_id):
            result.add_error(
                "parent_list_id",
                ValidationErrorCode.FOREIGN_KEY_VIOLATION,
                f"Parent list with ID '{parent_id}' does not exist",
                parent_list_id=parent_id,
            )
        return result

    async def _no_circular_reference(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        parent_id = data.get("parent_list_id")
        own_id = context.record_id or data.get("id")
        if not parent_id or not own_id:
            return result

        if parent_id == own_id or own_id in await self.data_access.get_list_ancestors(parent_id):
            result.add_error(
                "parent_list_id",
                ValidationErrorCode.CIRCULAR_DEPENDENCY,
                "Setting this parent would create a circular reference",
                list_id=own_id,
                parent_list_id=parent_id,
            )
        return result

    async def _unique_title_within_parent(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        title = data.get("title")
        if not title:
            return result

        own_id = context.record_id or data.get("id")
        if "parent_list_id" in data:
            parent_id = data["parent_list_id"]
        elif context.record_id:
            stored = await self.data_access.get_record(self.table, context.record_id)
            parent_id = stored.get("parent_list_id") if stored else None
        else:
            parent_id = None

        siblings = await self.data_access.find_records(self.table, "parent_list_id", parent_id)
        for sibling in siblings:
            if sibling.get("id") == own_id or sibling.get("status") == "deleted":
                continue
            if sibling.get("title") == title:
                result.add_error(
                    "title",
                    ValidationErrorCode.DUPLICATE_VALUE,
                    f"A list with title '{title}' already exists in this parent",
                    title=title,
                    parent_list_id=parent_id,
                    existing_list_id=sibling.get("id"),
                )
                break
        return result

    # =======================
    # BUSINESS RULES
    # =======================

    async def _max_nesting_depth(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        parent_id = data.get("parent_list_id")
        if not parent_id:
            return result

        level = self.nesting_level(await self.data_access.get_list_ancestors(parent_id))
        # A moved list takes its descendants with it
        if context.record_id:
            level += await self.data_access.get_subtree_height(context.record_id)
        if level > self.max_depth:
            result.add_error(
                "parent_list_id",
                ValidationErrorCode.BUSINESS_RULE_VIOLATION,
                f"Maximum nesting depth of {self.max_depth} levels exceeded",
                depth=level,
                max_depth=self.max_depth,
            )
        elif level >= self.max_depth * DEPTH_WARNING_RATIO:
            result.add_warning(
                "parent_list_id",
                WarningCode.APPROACHING_MAX_DEPTH,
                f"Approaching maximum nesting depth ({level}/{self.max_depth})",
                depth=level,
                max_depth=self.max_depth,
            )
        return result

    async def _valid_status_transition(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        return await self.check_status_transition(data, context, LIST_STATUS_TRANSITIONS)

    async def _completion_date_consistency(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        status = data.get("status")
        completed_at = data.get("completed_at")

        if status == "completed" and not completed_at:
            result.add_warning(
                "completed_at",
                WarningCode.MISSING_COMPLETION_DATE,
                "Completion date should be set when status is completed",
                status=status,
            )
        if status and status != "completed" and completed_at:
            result.add_error(
                "completed_at",
                ValidationErrorCode.BUSINESS_RULE_VIOLATION,
                "Completion date should only be set when status is completed",
                status=status,
                completed_at=str(completed_at),
            )
        return result
