"""
BusinessRule model and its parts: conditions, actions and per-rule outcomes.
"""

from enum import Enum
from typing import Any, Callable

from pydantic import BaseModel, Field

from .validation_result import ValidationContext


class RuleCategory(str, Enum):
    DATA_INTEGRITY = "data_integrity"
    BUSINESS_LOGIC = "business_logic"
    SECURITY = "security"
    PERFORMANCE = "performance"
    COMPLIANCE = "compliance"


class RuleSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    IN = "in"
    NOT_IN = "not_in"
    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    REGEX = "regex"
    CUSTOM = "custom"


class ActionType(str, Enum):
    VALIDATE = "validate"
    TRANSFORM = "transform"
    LOG = "log"
    NOTIFY = "notify"
    BLOCK = "block"


class RuleCondition(BaseModel):
    """
    One condition of a rule: ``field`` (dot path) compared to ``value``.

    ``custom_validator`` is only consulted for the ``custom`` operator and
    receives ``(data, context)``; it may be sync or async.
    """

    field: str = ""
    operator: ConditionOperator
    value: Any = None
    custom_validator: Callable[..., Any] | None = None


class RuleAction(BaseModel):
    """
    One action of a rule.

    Attributes:
        type: validate, transform, log, notify or block
        message: Reported message when the action fails the rule
        code: Reported code (taxonomy member or free-form rule code)
        check: Predicate ``(data, context) -> bool`` for validate actions
        transform: Function ``(data, context) -> dict`` for transform actions
        metadata: Free-form action metadata
    """

    type: ActionType
    message: str | None = None
    code: str | None = None
    check: Callable[..., Any] | None = None
    transform: Callable[..., Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BusinessRule(BaseModel):
    """
    A named, prioritized policy unit attached to one or more models.

    Conditions are ANDed; a rule whose ``applies_to`` is empty is never
    indexed for any model.
    """

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    category: RuleCategory = RuleCategory.BUSINESS_LOGIC
    severity: RuleSeverity = RuleSeverity.ERROR
    enabled: bool = True
    priority: int = 0
    applies_to: list[str] = Field(default_factory=list)
    conditions: list[RuleCondition] = Field(default_factory=list)
    actions: list[RuleAction] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "high_priority_requires_due_date",
                "name": "High priority items need a due date",
                "category": "business_logic",
                "severity": "warning",
                "enabled": True,
                "priority": 40,
                "applies_to": ["item"],
                "conditions": [
                    {"field": "priority", "operator": "in", "value": ["high", "urgent"]},
                    {"field": "due_date", "operator": "not_exists", "value": True},
                ],
                "actions": [
                    {"type": "block", "message": "High priority items should have a due date"}
                ],
            }
        }


class RuleExecutionResult(BaseModel):
    """Outcome of running one rule against one payload."""

    rule_id: str
    rule_name: str
    passed: bool
    severity: RuleSeverity
    message: str | None = None
    code: str | None = None
    transformed_data: dict[str, Any] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RuleContext(ValidationContext):
    """
    Cross-model context handed to rule conditions and actions.

    Attributes:
        current_model: Model name the rules are running for
        model_data: Payload under validation (the working copy)
        related_models: Related records the caller already loaded
    """

    current_model: str = ""
    model_data: dict[str, Any] = Field(default_factory=dict)
    related_models: dict[str, Any] = Field(default_factory=dict)
