"""
Built-in business rules registered by the validation system.

Each rule's validate action is backed by the data-access layer; numeric
thresholds come from configuration.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable

from taskguard.core.models import (
    ActionType,
    BusinessRule,
    ConditionOperator,
    RuleAction,
    RuleCategory,
    RuleCondition,
    RuleContext,
    RuleSeverity,
    ValidationErrorCode,
    WarningCode,
)
from taskguard.core.rules.rule_engine import BusinessRuleEngine
from taskguard.storage.base import DataAccess
from taskguard.utils.validation import coerce_datetime

DATA_RETENTION_RULE_ID = "data_retention_compliance"

RetentionPolicy = Callable[[dict[str, Any], RuleContext], bool | Awaitable[bool]]


def allow_all_retention(data: dict[str, Any], context: RuleContext) -> bool:
    """Default retention policy: every deletion is allowed."""
    return True


def build_system_rules(
    data_access: DataAccess,
    max_list_depth: int = 5,
    workload_threshold: int = 20,
    retention_policy: RetentionPolicy | None = None,
) -> list[BusinessRule]:
    """
    Build the built-in rules bound to a data-access instance.

    Args:
        data_access: Store used for depth, dependency and workload lookups
        max_list_depth: Deepest allowed list level (a root list is level 1)
        workload_threshold: Open assigned items a user may hold before warning
        retention_policy: Predicate deciding whether a deletion is allowed

    Returns:
        Rules in registration order
    """
    retention_policy = retention_policy or allow_all_retention

    async def within_max_depth(data: dict[str, Any], context: RuleContext) -> bool:
        ancestors = await data_access.get_list_ancestors(data["parent_list_id"])
        height = await data_access.get_subtree_height(context.record_id) if context.record_id else 0
        return len(ancestors) + 2 + height <= max_list_depth

    async def dependencies_completed(data: dict[str, Any], context: RuleContext) -> bool:
        for dependency_id in data.get("dependencies") or []:
            status = await data_access.get_current_status("items", dependency_id)
            if status is not None and status != "completed":
                return False
        return True

    def due_date_reasonable(data: dict[str, Any], context: RuleContext) -> bool:
        due = coerce_datetime(data["due_date"])
        now = datetime.now(timezone.utc)
        return now <= due <= now + timedelta(days=365)

    async def workload_balanced(data: dict[str, Any], context: RuleContext) -> bool:
        open_items = await data_access.count_open_items_assigned(data["assigned_to"])
        return open_items <= workload_threshold

    return [
        BusinessRule(
            id="list_max_depth",
            name="Maximum List Hierarchy Depth",
            description="Prevents lists from being nested too deeply",
            category=RuleCategory.BUSINESS_LOGIC,
            severity=RuleSeverity.ERROR,
            priority=100,
            applies_to=["list"],
            conditions=[RuleCondition(field="parent_list_id", operator=ConditionOperator.EXISTS, value=True)],
            actions=[
                RuleAction(
                    type=ActionType.VALIDATE,
                    message=f"Maximum nesting depth of {max_list_depth} levels exceeded",
                    code=ValidationErrorCode.BUSINESS_RULE_VIOLATION.value,
                    check=within_max_depth,
                    metadata={"field": "parent_list_id", "max_depth": max_list_depth},
                )
            ],
        ),
        BusinessRule(
            id=DATA_RETENTION_RULE_ID,
            name="Data Retention Compliance",
            description="Ensures deletions comply with the data retention policy",
            category=RuleCategory.COMPLIANCE,
            severity=RuleSeverity.ERROR,
            priority=95,
            applies_to=["list", "item"],
            conditions=[RuleCondition(field="status", operator=ConditionOperator.EQUALS, value="deleted")],
            actions=[
                RuleAction(
                    type=ActionType.VALIDATE,
                    message="Data retention policy violation",
                    code="DATA_RETENTION_VIOLATION",
                    check=retention_policy,
                    metadata={"field": "status"},
                )
            ],
        ),
        BusinessRule(
            id="item_dependency_completion",
            name="Item Dependency Completion Check",
            description="Items cannot be completed while dependencies are incomplete",
            category=RuleCategory.BUSINESS_LOGIC,
            severity=RuleSeverity.ERROR,
            priority=90,
            applies_to=["item"],
            conditions=[
                RuleCondition(field="status", operator=ConditionOperator.EQUALS, value="completed"),
                RuleCondition(field="dependencies", operator=ConditionOperator.EXISTS, value=True),
            ],
            actions=[
                RuleAction(
                    type=ActionType.VALIDATE,
                    message="Cannot complete item while dependencies are incomplete",
                    code=ValidationErrorCode.BUSINESS_RULE_VIOLATION.value,
                    check=dependencies_completed,
                    metadata={"field": "dependencies"},
                )
            ],
        ),
        BusinessRule(
            id="user_workload_balance",
            name="User Workload Balance",
            description="Warns when assigning too many items to a single user",
            category=RuleCategory.PERFORMANCE,
            severity=RuleSeverity.WARNING,
            priority=60,
            applies_to=["item"],
            conditions=[RuleCondition(field="assigned_to", operator=ConditionOperator.EXISTS, value=True)],
            actions=[
                RuleAction(
                    type=ActionType.VALIDATE,
                    message="User has high workload - consider redistributing tasks",
                    code=WarningCode.HIGH_USER_WORKLOAD.value,
                    check=workload_balanced,
                    metadata={"field": "assigned_to", "threshold": workload_threshold},
                )
            ],
        ),
        BusinessRule(
            id="reasonable_due_date",
            name="Reasonable Due Date",
            description="Warns about due dates in the past or more than a year out",
            category=RuleCategory.DATA_INTEGRITY,
            severity=RuleSeverity.WARNING,
            priority=50,
            applies_to=["item"],
            conditions=[RuleCondition(field="due_date", operator=ConditionOperator.EXISTS, value=True)],
            actions=[
                RuleAction(
                    type=ActionType.VALIDATE,
                    message="Due date appears unreasonable",
                    code=WarningCode.UNREASONABLE_DUE_DATE.value,
                    check=due_date_reasonable,
                    metadata={"field": "due_date"},
                )
            ],
        ),
    ]


def register_system_rules(engine: BusinessRuleEngine, data_access: DataAccess, **thresholds: Any) -> None:
    """Register the built-in rules on ``engine``. Safe to call repeatedly."""
    for rule in build_system_rules(data_access, **thresholds):
        engine.add_rule(rule)
