"""
ValidationSystem - the orchestrator in front of the validation core.

Wires the model validators, the business rule engine, the foreign-key
manager and the integrity monitor over one DataAccess, and runs a validate
call through its stages in order: model validation, reference validation,
business rules. Each later stage runs only if the previous one passed.

The class is meant to be constructed once at startup and passed to request
handlers. The module-level helpers keep a single shared instance for callers
that want one.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable

from taskguard.config import ConfigurationError, ValidationSystemConfig
from taskguard.core.models import (
    IntegrityCheckConfig,
    IntegrityMonitorResult,
    ScheduledCheckConfig,
    ValidationContext,
    ValidationErrorCode,
    ValidationOperation,
    ValidationResult,
    ValidationSystemResult,
)
from taskguard.core.rules import BusinessRuleEngine, RuleConfigLoader, register_system_rules
from taskguard.core.rules.system_rules import DATA_RETENTION_RULE_ID, RetentionPolicy
from taskguard.core.validators import AgentValidator, ItemValidator, ListValidator, ValidationRegistry
from taskguard.integrity import ForeignKeyManager, IntegrityMonitor
from taskguard.observability.logger import get_logger
from taskguard.observability.metrics import record_validation, track_duration, validation_duration_seconds
from taskguard.storage.base import DataAccess
from taskguard.storage.memory import InMemoryDataAccess

logger = get_logger(__name__)

MODEL_TABLES = {
    "list": "lists",
    "item": "items",
    "agent": "agents",
}

DAILY_INTEGRITY_CHECK = "daily_integrity_check"


class ValidationSystem:
    """
    Validation orchestrator.

    Args:
        config: Feature flags and thresholds (defaults if omitted)
        data_access: Store used by every lookup; an empty in-memory store if omitted
        retention_policy: Predicate for the data retention rule (allows all by default)
        rule_callables: Named callables referenced from the rules YAML file
    """

    def __init__(
        self,
        config: ValidationSystemConfig | None = None,
        data_access: DataAccess | None = None,
        retention_policy: RetentionPolicy | None = None,
        rule_callables: dict[str, Callable[..., Any]] | None = None,
    ):
        self.config = config or ValidationSystemConfig()
        self._owns_data_access = data_access is None
        self.data_access = data_access if data_access is not None else InMemoryDataAccess()
        self.retention_policy = retention_policy
        self.rule_callables = rule_callables or {}

        self.registry = ValidationRegistry()
        self.rule_engine = BusinessRuleEngine()
        self.foreign_key_manager = ForeignKeyManager(self.data_access)
        self.integrity_monitor = IntegrityMonitor(
            self.data_access,
            self.foreign_key_manager,
            self.rule_engine,
            registry=self.registry,
        )
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    # =======================
    # LIFECYCLE
    # =======================

    async def initialize(self) -> None:
        """
        Register validators and rules. Calling it again is a no-op.

        Raises:
            RuleConfigError: If the configured rules file is malformed
            FileNotFoundError: If the configured rules file does not exist
        """
        if self._initialized:
            return

        self._register_model_validators()

        if self.config.enable_business_rules:
            register_system_rules(
                self.rule_engine,
                self.data_access,
                max_list_depth=self.config.max_list_depth,
                workload_threshold=self.config.workload_threshold,
                retention_policy=self.retention_policy,
            )
            if self.config.rules_path:
                loader = RuleConfigLoader(self.config.rules_path, callables=self.rule_callables)
                for rule in loader.load_rules():
                    self.rule_engine.add_rule(rule)

        if self.config.enable_integrity_monitoring and self.config.scheduled_checks:
            self.integrity_monitor.add_scheduled_check(
                ScheduledCheckConfig(
                    id=DAILY_INTEGRITY_CHECK,
                    name="Daily Integrity Check",
                    schedule="0 2 * * *",
                    config=IntegrityCheckConfig.all_checks(batch_size=self.config.integrity_batch_size),
                )
            )

        self._initialized = True
        logger.info(
            "Validation system initialized",
            extra={
                "validators": self.registry.get_model_names(),
                "foreign_key_constraints": len(self.foreign_key_manager.get_all_constraints()),
                "business_rules": len(self.rule_engine.get_all_rules()),
            },
        )

    def _register_model_validators(self) -> None:
        self.registry.register("list", ListValidator(self.data_access, max_depth=self.config.max_list_depth))
        self.registry.register(
            "item",
            ItemValidator(self.data_access, long_task_threshold_minutes=self.config.long_task_threshold_minutes),
        )
        self.registry.register("agent", AgentValidator(self.data_access))

    async def cleanup(self) -> None:
        """Reset initialization state and release the store if this system created it."""
        self._initialized = False
        if self._owns_data_access:
            await self.data_access.close()
        logger.info("Validation system cleanup complete")

    # =======================
    # VALIDATION
    # =======================

    async def validate_model(
        self,
        model_name: str,
        data: Any,
        context: ValidationContext | None = None,
    ) -> ValidationSystemResult:
        """
        Validate a payload for ``model_name`` through every enabled stage.

        Dispatches on ``context.operation``: create and update run the staged
        pipeline, delete runs ``validate_deletion`` with ``context.record_id``
        (or ``data["id"]``). The call is bounded by
        ``operation_timeout_seconds``.

        Args:
            model_name: Registered model name ("list", "item", "agent")
            data: Raw payload
            context: Per-call context (create by default)

        Returns:
            ValidationSystemResult with per-stage results and flattened messages
        """
        context = context or ValidationContext()
        operation = context.operation.value

        if context.operation == ValidationOperation.DELETE:
            record_id = context.record_id or (data.get("id") if isinstance(data, dict) else None)
            if not record_id:
                return self._failed_result(
                    model_name,
                    operation,
                    ValidationResult.failure("id", ValidationErrorCode.REQUIRED_FIELD, "Record id is required for delete"),
                )
            return await self.validate_deletion(model_name, record_id, context)

        with track_duration(validation_duration_seconds, model=model_name, operation=operation):
            try:
                result = await asyncio.wait_for(
                    self._run_stages(model_name, data, context),
                    timeout=self.config.operation_timeout_seconds,
                )
            except asyncio.TimeoutError:
                logger.error(
                    f"Validation of {model_name} timed out",
                    extra={"model": model_name, "timeout_seconds": self.config.operation_timeout_seconds},
                )
                result = self._failed_result(
                    model_name,
                    operation,
                    ValidationResult.failure(
                        "general",
                        ValidationErrorCode.VALIDATION_ERROR,
                        f"Validation timed out after {self.config.operation_timeout_seconds}s",
                    ),
                )
            except Exception as e:
                logger.error(
                    f"Validation system error while validating {model_name}",
                    extra={"model": model_name, "operation": operation},
                    exc_info=True,
                )
                result = self._failed_result(
                    model_name,
                    operation,
                    ValidationResult.failure(
                        "general", ValidationErrorCode.VALIDATION_ERROR, f"Validation system error: {e}"
                    ),
                )

        self._record_metrics(model_name, operation, result)
        return result

    async def validate_create(self, model_name: str, data: Any, context: ValidationContext | None = None) -> ValidationSystemResult:
        base = context or ValidationContext()
        return await self.validate_model(model_name, data, base.model_copy(update={"operation": ValidationOperation.CREATE}))

    async def validate_update(
        self,
        model_name: str,
        record_id: str,
        data: Any,
        context: ValidationContext | None = None,
    ) -> ValidationSystemResult:
        base = context or ValidationContext()
        update = {"operation": ValidationOperation.UPDATE, "record_id": record_id}
        return await self.validate_model(model_name, data, base.model_copy(update=update))

    async def _run_stages(self, model_name: str, data: Any, context: ValidationContext) -> ValidationSystemResult:
        steps = ["model_validation"]
        result = ValidationSystemResult(
            success=True,
            metadata={
                "model_name": model_name,
                "operation": context.operation.value,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

        if context.operation == ValidationOperation.UPDATE:
            model_result = await self.registry.validate_update(model_name, data, context)
        else:
            model_result = await self.registry.validate_create(model_name, data, context)
        self._absorb(result, model_result)
        result.model_validation = model_result
        result.data = model_result.data

        table = MODEL_TABLES.get(model_name, model_name)

        if self.config.enable_foreign_key_checks and result.success:
            steps.append("foreign_key_validation")
            fk_result = await self.foreign_key_manager.validate_references(table, result.data or {})
            self._absorb(result, fk_result)
            result.foreign_key_validation = fk_result

        if self.config.enable_business_rules and not context.skip_business_rules and result.success:
            steps.append("business_rule_validation")
            rule_result = await self.rule_engine.execute_rules(model_name, result.data or {}, context)
            self._absorb(result, rule_result)
            result.business_rule_validation = rule_result
            result.data = rule_result.data

        result.metadata["validation_steps"] = steps
        return result

    async def validate_deletion(
        self,
        model_name: str,
        record_id: str,
        context: ValidationContext | None = None,
    ) -> ValidationSystemResult:
        """
        Validate deleting ``model_name`` record ``record_id``.

        Runs the validator's delete checks, then predicts the cascade through
        the foreign-key manager. Nothing is deleted or modified: the cascade
        is reported in ``metadata["cascade_analysis"]``. Only RESTRICT
        constraints with dependents, or a retention policy refusing the
        stored record, make the deletion fail.
        """
        base = context or ValidationContext()
        context = base.model_copy(update={"operation": ValidationOperation.DELETE, "record_id": record_id})
        result = ValidationSystemResult(
            success=True,
            data={"id": record_id},
            metadata={
                "model_name": model_name,
                "operation": ValidationOperation.DELETE.value,
                "record_id": record_id,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )

        with track_duration(validation_duration_seconds, model=model_name, operation="delete"):
            try:
                model_result = await self.registry.validate_delete(model_name, record_id, context)
                self._absorb(result, model_result)
                result.model_validation = model_result

                if self.config.enable_foreign_key_checks:
                    cascade = await self.foreign_key_manager.analyze_cascade_delete(
                        MODEL_TABLES.get(model_name, model_name), record_id
                    )
                    cascade_result = ValidationResult(errors=list(cascade.errors))
                    self._absorb(result, cascade_result)
                    result.foreign_key_validation = cascade_result
                    result.metadata["cascade_analysis"] = {
                        "affected_records": len(cascade.affected_records),
                        "operations": [
                            {"table": r.table, "operation": r.operation.value, "record_id": r.id}
                            for r in cascade.affected_records
                        ],
                    }

                if self.config.enable_business_rules and not context.skip_business_rules:
                    stored = await self.data_access.get_record(MODEL_TABLES.get(model_name, model_name), record_id)
                    if stored is not None:
                        retention_result = await self.rule_engine.execute_rules(
                            model_name, {**stored, "status": "deleted"}, context, rule_ids={DATA_RETENTION_RULE_ID}
                        )
                        self._absorb(result, retention_result)
                        result.business_rule_validation = retention_result
            except Exception as e:
                logger.error(
                    f"Deletion validation error for {model_name}",
                    extra={"model": model_name, "record_id": record_id},
                    exc_info=True,
                )
                error_result = ValidationResult.failure(
                    "general", ValidationErrorCode.VALIDATION_ERROR, f"Deletion validation error: {e}"
                )
                self._absorb(result, error_result)
                result.model_validation = result.model_validation or error_result

        self._record_metrics(model_name, "delete", result)
        return result

    @staticmethod
    def _absorb(result: ValidationSystemResult, stage: ValidationResult) -> None:
        if not stage.success:
            result.success = False
        result.errors.extend(e.message for e in stage.errors)
        result.warnings.extend(w.message for w in stage.warnings)

    def _failed_result(self, model_name: str, operation: str, stage: ValidationResult) -> ValidationSystemResult:
        result = ValidationSystemResult(
            success=False,
            model_validation=stage,
            metadata={
                "model_name": model_name,
                "operation": operation,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
        )
        result.errors.extend(e.message for e in stage.errors)
        return result

    @staticmethod
    def _record_metrics(model_name: str, operation: str, result: ValidationSystemResult) -> None:
        combined = ValidationResult()
        for stage in (result.model_validation, result.foreign_key_validation, result.business_rule_validation):
            if stage is not None:
                combined.merge(stage)
        record_validation(model_name, operation, combined)

    # =======================
    # INTEGRITY
    # =======================

    async def perform_integrity_check(self) -> IntegrityMonitorResult:
        """
        Run a full integrity scan with every category enabled.

        Raises:
            ConfigurationError: If integrity monitoring is disabled
        """
        if not self.config.enable_integrity_monitoring:
            raise ConfigurationError("Integrity monitoring is not enabled")

        return await self.integrity_monitor.perform_integrity_check(
            IntegrityCheckConfig.all_checks(batch_size=self.config.integrity_batch_size)
        )

    def get_validation_stats(self) -> dict[str, Any]:
        return {
            "registered_validators": self.registry.get_model_names(),
            "constraints": {
                name: len(self.registry.get(name).get_constraints()) for name in self.registry.get_model_names()
            },
            "foreign_key_constraints": len(self.foreign_key_manager.get_all_constraints()),
            "business_rules": len(self.rule_engine.get_all_rules()),
            "scheduled_checks": [check.id for check in self.integrity_monitor.get_scheduled_checks()],
            "system_health": {
                "initialized": self._initialized,
                "foreign_key_checks_enabled": self.config.enable_foreign_key_checks,
                "business_rules_enabled": self.config.enable_business_rules,
                "integrity_monitoring_enabled": self.config.enable_integrity_monitoring,
            },
        }


# =======================
# SHARED INSTANCE
# =======================

_global_system: ValidationSystem | None = None


async def initialize_validation_system(
    config: ValidationSystemConfig | None = None,
    **kwargs: Any,
) -> ValidationSystem:
    """
    Create and initialize the shared validation system, or return it if it exists.

    Args:
        config: System configuration
        **kwargs: Arguments passed to the ValidationSystem constructor

    Returns:
        Initialized ValidationSystem instance
    """
    global _global_system
    if _global_system is not None:
        return _global_system

    system = ValidationSystem(config, **kwargs)
    await system.initialize()
    _global_system = system
    return _global_system


def get_validation_system() -> ValidationSystem:
    """
    Get the shared validation system.

    Raises:
        RuntimeError: If the system has not been initialized
    """
    if _global_system is None:
        raise RuntimeError(
            "Validation system not initialized. Call initialize_validation_system() first."
        )
    return _global_system


async def cleanup_validation_system() -> None:
    """Clean up and drop the shared validation system."""
    global _global_system
    if _global_system is not None:
        await _global_system.cleanup()
        _global_system = None
