"""
Core data models for the taskguard validation core.

All models use Pydantic for runtime validation and type safety.
"""

from .agent_model import AgentAction, AgentCreate, AgentRole, AgentUpdate
from .business_rule import (
    ActionType,
    BusinessRule,
    ConditionOperator,
    RuleAction,
    RuleCategory,
    RuleCondition,
    RuleContext,
    RuleExecutionResult,
    RuleSeverity,
)
from .foreign_key import (
    AffectedRecord,
    CascadeOperation,
    CascadeResult,
    ForeignKeyConstraint,
    ReferenceCheckResult,
    ReferentialAction,
    ReferenceViolation,
    ReferenceViolationType,
)
from .integrity import (
    IntegrityCheckConfig,
    IntegrityMonitorResult,
    IntegritySummary,
    IntegrityViolation,
    IntegrityWarning,
    ScheduledCheckConfig,
    ViolationSeverity,
    ViolationType,
)
from .item_model import ItemCreate, ItemStatus, ItemUpdate
from .list_model import ListCreate, ListStatus, ListUpdate, Priority
from .validation_result import (
    ValidationContext,
    ValidationError,
    ValidationErrorCode,
    ValidationOperation,
    ValidationResult,
    ValidationSystemResult,
    ValidationWarning,
    WarningCode,
)

__all__ = [
    "ActionType",
    "AffectedRecord",
    "AgentAction",
    "AgentCreate",
    "AgentRole",
    "AgentUpdate",
    "BusinessRule",
    "CascadeOperation",
    "CascadeResult",
    "ConditionOperator",
    "ForeignKeyConstraint",
    "IntegrityCheckConfig",
    "IntegrityMonitorResult",
    "IntegritySummary",
    "IntegrityViolation",
    "IntegrityWarning",
    "ItemCreate",
    "ItemStatus",
    "ItemUpdate",
    "ListCreate",
    "ListStatus",
    "ListUpdate",
    "Priority",
    "ReferenceCheckResult",
    "ReferentialAction",
    "ReferenceViolation",
    "ReferenceViolationType",
    "RuleAction",
    "RuleCategory",
    "RuleCondition",
    "RuleContext",
    "RuleExecutionResult",
    "RuleSeverity",
    "ScheduledCheckConfig",
    "ValidationContext",
    "ValidationError",
    "ValidationErrorCode",
    "ValidationOperation",
    "ValidationResult",
    "ValidationSystemResult",
    "ValidationWarning",
    "ViolationSeverity",
    "ViolationType",
    "WarningCode",
]
