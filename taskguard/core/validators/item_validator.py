"""
ItemValidator - schema, constraints and business rules for items.
"""

from datetime import datetime, timedelta, timezone
from typing import Any

from taskguard.core.models import (
    ItemCreate,
    ItemUpdate,
    ValidationContext,
    ValidationErrorCode,
    ValidationResult,
    WarningCode,
)
from taskguard.storage.base import DataAccess
from taskguard.utils.validation import coerce_datetime

from .base_validator import BaseModelValidator, ConstraintType, ModelConstraint

ITEM_STATUS_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"in_progress", "cancelled", "blocked"},
    "in_progress": {"completed", "cancelled", "blocked", "pending"},
    "completed": {"in_progress"},
    "cancelled": {"pending", "in_progress"},
    "blocked": {"pending", "in_progress", "cancelled"},
}

DURATION_OVERRUN_RATIO = 2.0


class ItemValidator(BaseModelValidator):
    """
    Validates item payloads.

    Constraints:
    - list_exists: the owning list must exist
    - dependencies_exist: one error per missing dependency id
    - no_circular_dependencies: the item may not (transitively) depend on itself
    - assigned_user_exists: the assignee must be a known agent

    Business rules:
    - due_date_validation: warns on past-due or more than a year out
    - duration_validation: warns on large overruns and very long estimates
    - valid_status_transition: follows ITEM_STATUS_TRANSITIONS
    - dependency_completion_check: completing with open dependencies is an
      error, starting with open dependencies is a warning
    """

    model_name = "item"
    table = "items"
    create_schema = ItemCreate
    update_schema = ItemUpdate

    def __init__(self, data_access: DataAccess, long_task_threshold_minutes: int = 2400):
        super().__init__(data_access)
        self.long_task_threshold_minutes = long_task_threshold_minutes

        self.add_constraint(ModelConstraint("list_exists", ConstraintType.FOREIGN_KEY, self._list_exists))
        self.add_constraint(ModelConstraint("dependencies_exist", ConstraintType.FOREIGN_KEY, self._dependencies_exist))
        self.add_constraint(
            ModelConstraint("no_circular_dependencies", ConstraintType.CHECK, self._no_circular_dependencies)
        )
        self.add_constraint(
            ModelConstraint("assigned_user_exists", ConstraintType.FOREIGN_KEY, self._assigned_user_exists)
        )

        self.add_business_rule(ModelConstraint("due_date_validation", ConstraintType.BUSINESS_RULE, self._due_date_validation))
        self.add_business_rule(ModelConstraint("duration_validation", ConstraintType.BUSINESS_RULE, self._duration_validation))
        self.add_business_rule(
            ModelConstraint("valid_status_transition", ConstraintType.BUSINESS_RULE, self._valid_status_transition)
        )
        self.add_business_rule(
            ModelConstraint("dependency_completion_check", ConstraintType.BUSINESS_RULE, self._dependency_completion_check)
        )

    # =======================
    # CONSTRAINTS
    # =======================

    async def _list_exists(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        list_id = data.get("list_id")
        if list_id and not await self.data_access.list_exists(list_id):
            result.add_error(
                "list_id",
                ValidationErrorCode.FOREIGN_KEY_VIOLATION,
                f"List with ID '{list_id}' does not exist",
                list_id=list_id,
            )
        return result

    async def _dependencies_exist(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        for dependency_id in data.get("dependencies") or []:
            if not await self.data_access.item_exists(dependency_id):
                result.add_error(
                    "dependencies",
                    ValidationErrorCode.FOREIGN_KEY_VIOLATION,
                    f"Dependency item with ID '{dependency_id}' does not exist",
                    dependency_id=dependency_id,
                )
        return result

    async def _no_circular_dependencies(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        dependencies = data.get("dependencies") or []
        own_id = context.record_id or data.get("id")
        if not dependencies or not own_id:
            return result

        path = await self._find_path_to(own_id, dependencies)
        if path is not None:
            result.add_error(
                "dependencies",
                ValidationErrorCode.CIRCULAR_DEPENDENCY,
                "Adding these dependencies would create a circular dependency",
                item_id=own_id,
                cycle=[own_id, *path],
            )
        return result

    async def _find_path_to(self, target: str, start: list[str]) -> list[str] | None:
        """Depth-first search over stored dependencies; returns the path reaching ``target``."""
        visited: set[str] = set()
        stack: list[tuple[str, list[str]]] = [(dep, [dep]) for dep in reversed(start)]

        while stack:
            node, path = stack.pop()
            if node == target:
                return path
            if node in visited:
                continue
            visited.add(node)
            for nxt in reversed(await self.data_access.get_item_dependencies(node)):
                if nxt not in visited:
                    stack.append((nxt, [*path, nxt]))
        return None

    async def _assigned_user_exists(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        assignee = data.get("assigned_to")
        if assignee and not await self.data_access.user_exists(assignee):
            result.add_error(
                "assigned_to",
                ValidationErrorCode.FOREIGN_KEY_VIOLATION,
                f"User with ID '{assignee}' does not exist",
                assigned_to=assignee,
            )
        return result

    # =======================
    # BUSINESS RULES
    # =======================

    async def _due_date_validation(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        due = coerce_datetime(data.get("due_date"))
        if due is None:
            return result

        now = datetime.now(timezone.utc)
        if due < now:
            result.add_warning(
                "due_date", WarningCode.PAST_DUE_DATE, "Due date is in the past", due_date=due.isoformat()
            )
        elif due > now + timedelta(days=365):
            result.add_warning(
                "due_date",
                WarningCode.DISTANT_DUE_DATE,
                "Due date is more than one year in the future",
                due_date=due.isoformat(),
            )
        return result

    async def _duration_validation(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        estimated = data.get("estimated_duration")
        actual = data.get("actual_duration")

        if estimated and actual:
            ratio = actual / estimated
            if ratio > DURATION_OVERRUN_RATIO:
                result.add_warning(
                    "actual_duration",
                    WarningCode.DURATION_OVERRUN,
                    f"Actual duration ({actual}min) significantly exceeds estimated duration ({estimated}min)",
                    actual_duration=actual,
                    estimated_duration=estimated,
                    ratio=ratio,
                )

        if estimated and estimated > self.long_task_threshold_minutes:
            result.add_warning(
                "estimated_duration",
                WarningCode.LONG_DURATION,
                f"Estimated duration is very long (>{self.long_task_threshold_minutes // 60} hours). "
                "Consider breaking into smaller tasks.",
                estimated_duration=estimated,
                threshold=self.long_task_threshold_minutes,
            )
        return result

    async def _valid_status_transition(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        return await self.check_status_transition(data, context, ITEM_STATUS_TRANSITIONS)

    async def _dependency_completion_check(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        result = ValidationResult()
        status = data.get("status")
        if status not in ("in_progress", "completed"):
            return result

        if "dependencies" in data:
            dependencies = data.get("dependencies") or []
        elif context.record_id:
            dependencies = await self.data_access.get_item_dependencies(context.record_id)
        else:
            dependencies = []

        incomplete = []
        for dependency_id in dependencies:
            dep_status = await self.data_access.get_current_status("items", dependency_id)
            if dep_status is not None and dep_status != "completed":
                incomplete.append(dependency_id)

        if not incomplete:
            return result

        if status == "completed":
            result.add_error(
                "status",
                ValidationErrorCode.BUSINESS_RULE_VIOLATION,
                "Cannot complete item while dependencies are incomplete",
                status=status,
                incomplete_dependencies=incomplete,
            )
        else:
            result.add_warning(
                "status",
                WarningCode.INCOMPLETE_DEPENDENCIES,
                "Starting item while dependencies are incomplete",
                status=status,
                incomplete_dependencies=incomplete,
            )
        return result
