"""
Validation envelopes shared by every stage: errors, warnings, per-call context
and the combined result returned by the validation system.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field


class ValidationErrorCode(str, Enum):
    """Closed set of codes a ValidationError may carry."""

    REQUIRED_FIELD = "REQUIRED_FIELD"
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_FORMAT = "INVALID_FORMAT"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    DUPLICATE_VALUE = "DUPLICATE_VALUE"
    FOREIGN_KEY_VIOLATION = "FOREIGN_KEY_VIOLATION"
    BUSINESS_RULE_VIOLATION = "BUSINESS_RULE_VIOLATION"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONSTRAINT_ERROR = "CONSTRAINT_ERROR"
    BUSINESS_RULE_ERROR = "BUSINESS_RULE_ERROR"
    FK_CONSTRAINT_ERROR = "FK_CONSTRAINT_ERROR"
    VALIDATOR_NOT_FOUND = "VALIDATOR_NOT_FOUND"
    RULE_EXECUTION_ERROR = "RULE_EXECUTION_ERROR"


class WarningCode(str, Enum):
    """Codes used by the built-in warnings. Custom rules may use any string."""

    APPROACHING_MAX_DEPTH = "APPROACHING_MAX_DEPTH"
    MISSING_COMPLETION_DATE = "MISSING_COMPLETION_DATE"
    PAST_DUE_DATE = "PAST_DUE_DATE"
    DISTANT_DUE_DATE = "DISTANT_DUE_DATE"
    DURATION_OVERRUN = "DURATION_OVERRUN"
    LONG_DURATION = "LONG_DURATION"
    INCOMPLETE_DEPENDENCIES = "INCOMPLETE_DEPENDENCIES"
    UNREASONABLE_DUE_DATE = "UNREASONABLE_DUE_DATE"
    HIGH_USER_WORKLOAD = "HIGH_USER_WORKLOAD"
    BUSINESS_RULE_WARNING = "BUSINESS_RULE_WARNING"


class ValidationError(BaseModel):
    """
    A blocking validation failure.

    Attributes:
        field: Offending field (dot path), or a pseudo-field such as "model"
        code: Taxonomy code
        message: Human-readable description
        severity: Severity of the originating check, when known
        context: Structured diagnostic payload (ids, thresholds, values)
    """

    field: str
    code: ValidationErrorCode
    message: str
    severity: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    class Config:
        json_schema_extra = {
            "example": {
                "field": "parent_list_id",
                "code": "FOREIGN_KEY_VIOLATION",
                "message": "Parent list 'L9' does not exist",
                "severity": "error",
                "context": {"parent_list_id": "L9"},
            }
        }


class ValidationWarning(BaseModel):
    """A non-blocking finding. Never affects ``success``."""

    field: str
    code: str
    message: str
    severity: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)


class ValidationResult(BaseModel):
    """
    Outcome of one validation stage.

    ``success`` is derived from ``errors`` so the two can never disagree.
    ``info`` holds failed info-severity rule outcomes, which are recorded
    but do not gate success.
    """

    data: dict[str, Any] | None = None
    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationWarning] = Field(default_factory=list)
    info: list[ValidationWarning] = Field(default_factory=list)

    @computed_field
    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    def add_error(
        self,
        field: str,
        code: ValidationErrorCode,
        message: str,
        severity: str | None = "error",
        **context: Any,
    ) -> None:
        self.errors.append(
            ValidationError(field=field, code=code, message=message, severity=severity, context=context)
        )

    def add_warning(self, field: str, code: str, message: str, **context: Any) -> None:
        self.warnings.append(
            ValidationWarning(
                field=field,
                code=getattr(code, "value", code),
                message=message,
                severity="warning",
                context=context,
            )
        )

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        """Append another result's findings to this one (in order) and return self."""
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)
        self.info.extend(other.info)
        return self

    @classmethod
    def failure(
        cls,
        field: str,
        code: ValidationErrorCode,
        message: str,
        **context: Any,
    ) -> "ValidationResult":
        """Build a result holding a single error."""
        result = cls()
        result.add_error(field, code, message, **context)
        return result


class ValidationOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ValidationContext(BaseModel):
    """
    Per-call context, created fresh by the caller for one validate call.

    Attributes:
        operation: create, update or delete
        user_id: Acting user, if any
        record_id: Target record for update/delete
        skip_business_rules: Skip validator-local business rules
        skip_constraints: Skip named constraints
        transaction: Opaque caller transaction handle, passed through untouched
    """

    operation: ValidationOperation = ValidationOperation.CREATE
    user_id: str | None = None
    record_id: str | None = None
    skip_business_rules: bool = False
    skip_constraints: bool = False
    transaction: Any = None

    model_config = {"arbitrary_types_allowed": True}


class ValidationSystemResult(BaseModel):
    """
    Combined result of ValidationSystem.validate_model / validate_deletion.

    Stage results are None when the stage was disabled or skipped because a
    prior stage failed. ``errors``/``warnings`` are the flattened messages of
    every stage that ran.
    """

    success: bool
    model_validation: ValidationResult | None = None
    foreign_key_validation: ValidationResult | None = None
    business_rule_validation: ValidationResult | None = None
    data: dict[str, Any] | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
