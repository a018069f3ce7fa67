"""
Base model validator and the registry mapping model names to validators.

A model validator runs three stages in order: schema validation (pydantic),
named constraints, then named validator-local business rules. A schema
failure short-circuits; constraints and business rules always all run so a
single call reports every violation.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from taskguard.core.models import (
    ValidationContext,
    ValidationErrorCode,
    ValidationOperation,
    ValidationResult,
)
from taskguard.observability.logger import get_logger
from taskguard.storage.base import DataAccess

logger = get_logger(__name__)

ConstraintCheck = Callable[[dict[str, Any], ValidationContext], Awaitable[ValidationResult]]


class ConstraintType(str, Enum):
    FOREIGN_KEY = "foreign_key"
    UNIQUE = "unique"
    CHECK = "check"
    BUSINESS_RULE = "business_rule"


@dataclass
class ModelConstraint:
    """
    A named async check owned by one model validator.

    ``validate`` receives the schema-validated payload and the call context
    and returns a ValidationResult.
    """

    name: str
    type: ConstraintType
    validate: ConstraintCheck
    dependencies: list[str] = field(default_factory=list)


# pydantic error type -> taxonomy code
_SCHEMA_ERROR_CODES = {
    "missing": ValidationErrorCode.REQUIRED_FIELD,
    "string_too_short": ValidationErrorCode.OUT_OF_RANGE,
    "string_too_long": ValidationErrorCode.OUT_OF_RANGE,
    "too_short": ValidationErrorCode.OUT_OF_RANGE,
    "too_long": ValidationErrorCode.OUT_OF_RANGE,
    "greater_than": ValidationErrorCode.OUT_OF_RANGE,
    "greater_than_equal": ValidationErrorCode.OUT_OF_RANGE,
    "less_than": ValidationErrorCode.OUT_OF_RANGE,
    "less_than_equal": ValidationErrorCode.OUT_OF_RANGE,
    "enum": ValidationErrorCode.INVALID_FORMAT,
    "literal_error": ValidationErrorCode.INVALID_FORMAT,
    "string_pattern_mismatch": ValidationErrorCode.INVALID_FORMAT,
    "datetime_parsing": ValidationErrorCode.INVALID_FORMAT,
    "datetime_from_date_parsing": ValidationErrorCode.INVALID_FORMAT,
    "int_from_float": ValidationErrorCode.INVALID_TYPE,
}


def schema_error_code(error_type: str) -> ValidationErrorCode:
    """
    Map a pydantic error type onto the taxonomy.

    Examples:
        >>> schema_error_code("missing").value
        'REQUIRED_FIELD'
        >>> schema_error_code("string_type").value
        'INVALID_TYPE'
    """
    if error_type in _SCHEMA_ERROR_CODES:
        return _SCHEMA_ERROR_CODES[error_type]
    if error_type.endswith("_type") or error_type.endswith("_parsing"):
        return ValidationErrorCode.INVALID_TYPE
    return ValidationErrorCode.VALIDATION_ERROR


class BaseModelValidator:
    """
    Base class for per-model validators.

    Subclasses set ``model_name``, ``table``, ``create_schema`` and
    ``update_schema`` and register their constraints and business rules
    in ``__init__``.
    """

    model_name: str = ""
    table: str = ""
    create_schema: type[BaseModel]
    update_schema: type[BaseModel]

    def __init__(self, data_access: DataAccess):
        self.data_access = data_access
        self._constraints: dict[str, ModelConstraint] = {}
        self._business_rules: dict[str, ModelConstraint] = {}

    # =======================
    # PUBLIC API
    # =======================

    async def validate_create(self, data: Any, context: ValidationContext | None = None) -> ValidationResult:
        """Validate a create payload."""
        context = context or ValidationContext(operation=ValidationOperation.CREATE)
        return await self._validate(data, self.create_schema, context, exclude_unset=False)

    async def validate_update(self, data: Any, context: ValidationContext | None = None) -> ValidationResult:
        """
        Validate an update payload.

        Only the fields present in ``data`` are checked. The record being
        updated is identified by ``context.record_id``.
        """
        context = context or ValidationContext(operation=ValidationOperation.UPDATE)
        return await self._validate(data, self.update_schema, context, exclude_unset=True)

    async def validate_delete(self, record_id: str, context: ValidationContext | None = None) -> ValidationResult:
        """
        Run foreign-key constraints against ``{"id": record_id}``.

        A raising constraint is reported as FK_CONSTRAINT_ERROR.
        """
        base = context or ValidationContext()
        context = base.model_copy(update={"operation": ValidationOperation.DELETE, "record_id": record_id})
        result = ValidationResult(data={"id": record_id})

        for name, constraint in list(self._constraints.items()):
            if constraint.type != ConstraintType.FOREIGN_KEY:
                continue
            try:
                result.merge(await constraint.validate({"id": record_id}, context))
            except Exception as e:
                logger.error(
                    f"Foreign key constraint '{name}' raised during delete validation",
                    extra={"model": self.model_name, "constraint": name, "record_id": record_id},
                    exc_info=True,
                )
                result.add_error(
                    "foreign_key",
                    ValidationErrorCode.FK_CONSTRAINT_ERROR,
                    f"Foreign key constraint '{name}' prevents deletion: {e}",
                    constraint=name,
                    id=record_id,
                )

        return result

    def add_constraint(self, constraint: ModelConstraint) -> None:
        self._constraints[constraint.name] = constraint

    def remove_constraint(self, name: str) -> None:
        self._constraints.pop(name, None)

    def get_constraints(self) -> list[ModelConstraint]:
        return list(self._constraints.values())

    def add_business_rule(self, rule: ModelConstraint) -> None:
        self._business_rules[rule.name] = rule

    def remove_business_rule(self, name: str) -> None:
        self._business_rules.pop(name, None)

    def get_business_rules(self) -> list[ModelConstraint]:
        return list(self._business_rules.values())

    # =======================
    # STAGES
    # =======================

    async def _validate(
        self,
        data: Any,
        schema: type[BaseModel],
        context: ValidationContext,
        exclude_unset: bool,
    ) -> ValidationResult:
        schema_result = self.validate_schema(data, schema, context, exclude_unset)
        if not schema_result.success:
            return schema_result

        result = ValidationResult(data=schema_result.data)
        try:
            if not context.skip_constraints:
                result.merge(await self.validate_constraints(result.data, context))
            if not context.skip_business_rules:
                result.merge(await self.validate_business_rules(result.data, context))
        except Exception as e:
            logger.error(
                f"Unexpected error validating {self.model_name}",
                extra={"model": self.model_name, "operation": context.operation.value},
                exc_info=True,
            )
            result.add_error("general", ValidationErrorCode.VALIDATION_ERROR, str(e) or type(e).__name__)

        return result

    def validate_schema(
        self,
        data: Any,
        schema: type[BaseModel],
        context: ValidationContext,
        exclude_unset: bool = False,
    ) -> ValidationResult:
        """Validate the payload shape, mapping pydantic errors to the taxonomy."""
        try:
            model = schema.model_validate(data)
        except SchemaError as e:
            result = ValidationResult()
            for error in e.errors():
                result.add_error(
                    ".".join(str(part) for part in error["loc"]) or "model",
                    schema_error_code(error["type"]),
                    error["msg"],
                    operation=context.operation.value,
                    error_type=error["type"],
                )
            return result

        return ValidationResult(data=model.model_dump(exclude_unset=exclude_unset))

    async def validate_constraints(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        """Run every constraint in registration order; a raising constraint yields CONSTRAINT_ERROR."""
        result = ValidationResult()
        for name, constraint in list(self._constraints.items()):
            try:
                result.merge(await constraint.validate(data, context))
            except Exception as e:
                logger.error(
                    f"Constraint '{name}' raised",
                    extra={"model": self.model_name, "constraint": name},
                    exc_info=True,
                )
                result.add_error(
                    "constraint",
                    ValidationErrorCode.CONSTRAINT_ERROR,
                    f"Constraint '{name}' validation failed: {e}",
                    constraint=name,
                )
        return result

    async def validate_business_rules(self, data: dict[str, Any], context: ValidationContext) -> ValidationResult:
        """Run every business rule in registration order; a raising rule yields BUSINESS_RULE_ERROR."""
        result = ValidationResult()
        for name, rule in list(self._business_rules.items()):
            try:
                result.merge(await rule.validate(data, context))
            except Exception as e:
                logger.error(
                    f"Business rule '{name}' raised",
                    extra={"model": self.model_name, "rule": name},
                    exc_info=True,
                )
                result.add_error(
                    "business_rule",
                    ValidationErrorCode.BUSINESS_RULE_ERROR,
                    f"Business rule '{name}' validation failed: {e}",
                    rule=name,
                )
        return result

    # =======================
    # SHARED CHECKS
    # =======================

    async def check_status_transition(
        self,
        data: dict[str, Any],
        context: ValidationContext,
        transitions: dict[str, set[str]],
    ) -> ValidationResult:
        """
        Check ``data["status"]`` against the stored status of ``context.record_id``.

        Skipped unless this is an update carrying a status and a record id.
        """
        result = ValidationResult()
        new_status = data.get("status")
        if context.operation != ValidationOperation.UPDATE or new_status is None or not context.record_id:
            return result

        current = await self.data_access.get_current_status(self.table, context.record_id)
        if current is None:
            result.add_error(
                "status",
                ValidationErrorCode.RESOURCE_NOT_FOUND,
                f"{self.model_name.capitalize()} '{context.record_id}' not found",
                record_id=context.record_id,
            )
            return result

        allowed = transitions.get(current, set())
        if new_status not in allowed:
            result.add_error(
                "status",
                ValidationErrorCode.INVALID_STATE_TRANSITION,
                f"Invalid status transition from '{current}' to '{new_status}'",
                current_status=current,
                new_status=new_status,
                allowed_transitions=sorted(allowed),
            )
        return result

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(model={self.model_name}, "
            f"constraints={len(self._constraints)}, business_rules={len(self._business_rules)})"
        )


class ValidationRegistry:
    """
    Maps model names to validators.

    Calls for an unregistered model return a VALIDATOR_NOT_FOUND result
    instead of raising.
    """

    def __init__(self):
        self._validators: dict[str, BaseModelValidator] = {}

    def register(self, model_name: str, validator: BaseModelValidator) -> None:
        self._validators[model_name] = validator

    def unregister(self, model_name: str) -> None:
        self._validators.pop(model_name, None)

    def get(self, model_name: str) -> BaseModelValidator | None:
        return self._validators.get(model_name)

    def has(self, model_name: str) -> bool:
        return model_name in self._validators

    def get_model_names(self) -> list[str]:
        return list(self._validators)

    def clear(self) -> None:
        self._validators.clear()

    async def validate_create(self, model_name: str, data: Any, context: ValidationContext) -> ValidationResult:
        validator = self.get(model_name)
        if validator is None:
            return self._not_found(model_name)
        return await validator.validate_create(data, context)

    async def validate_update(self, model_name: str, data: Any, context: ValidationContext) -> ValidationResult:
        validator = self.get(model_name)
        if validator is None:
            return self._not_found(model_name)
        return await validator.validate_update(data, context)

    async def validate_delete(self, model_name: str, record_id: str, context: ValidationContext) -> ValidationResult:
        validator = self.get(model_name)
        if validator is None:
            return self._not_found(model_name)
        return await validator.validate_delete(record_id, context)

    @staticmethod
    def _not_found(model_name: str) -> ValidationResult:
        return ValidationResult.failure(
            "model",
            ValidationErrorCode.VALIDATOR_NOT_FOUND,
            f"No validator registered for model '{model_name}'",
            model_name=model_name,
        )
