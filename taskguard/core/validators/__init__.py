"""
Model validators.

Provides the base validator with its constraint/business-rule stages, the
validator registry, and the list, item and agent validators.
"""

from .agent_validator import AgentValidator
from .base_validator import (
    BaseModelValidator,
    ConstraintType,
    ModelConstraint,
    ValidationRegistry,
    schema_error_code,
)
from .item_validator import ITEM_STATUS_TRANSITIONS, ItemValidator
from .list_validator import LIST_STATUS_TRANSITIONS, ListValidator

__all__ = [
    "AgentValidator",
    "BaseModelValidator",
    "ConstraintType",
    "ITEM_STATUS_TRANSITIONS",
    "ItemValidator",
    "LIST_STATUS_TRANSITIONS",
    "ListValidator",
    "ModelConstraint",
    "ValidationRegistry",
    "schema_error_code",
]
