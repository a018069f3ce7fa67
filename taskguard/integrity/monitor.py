"""
Integrity monitor - system-wide scans of persisted data.

Each check category runs as an independent sub-scan. A category that raises
is reported as one critical violation and the remaining categories still
run. The merged result carries a weighted health score and recommendations.
"""

import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from taskguard.core.models import (
    IntegrityCheckConfig,
    IntegrityMonitorResult,
    IntegritySummary,
    IntegrityViolation,
    IntegrityWarning,
    ScheduledCheckConfig,
    ValidationContext,
    ValidationErrorCode,
    ValidationOperation,
    ViolationSeverity,
    ViolationType,
)
from taskguard.core.rules.rule_engine import BusinessRuleEngine
from taskguard.core.validators.base_validator import ValidationRegistry
from taskguard.integrity.foreign_keys import ForeignKeyManager
from taskguard.integrity.graph import nodes_in_cycles
from taskguard.observability.logger import get_logger, log_operation
from taskguard.observability.metrics import record_integrity_check
from taskguard.storage.base import DataAccess
from taskguard.utils.validation import InputValidationError, coerce_datetime

logger = get_logger(__name__)

DEFAULT_TABLES = ["lists", "items", "agents"]

TABLE_MODELS = {
    "lists": "list",
    "items": "item",
    "agents": "agent",
    "sessions": "session",
}

SEVERITY_WEIGHTS = {
    ViolationSeverity.CRITICAL: 20,
    ViolationSeverity.HIGH: 10,
    ViolationSeverity.MEDIUM: 5,
    ViolationSeverity.LOW: 1,
}
WARNING_WEIGHT = 1

REFERENCE_FIXES = {
    "MISSING_REFERENCE": "Create missing {target_table} record or update reference",
    "ORPHANED_RECORD": "Delete orphaned record or restore missing reference",
    "CIRCULAR_REFERENCE": "Break circular reference by updating parent/child relationships",
}

BUSINESS_RULE_FIXES = {
    ValidationErrorCode.BUSINESS_RULE_VIOLATION: "Review business rule requirements and update data accordingly",
    ValidationErrorCode.INVALID_STATE_TRANSITION: "Ensure status transitions follow valid business logic",
    ValidationErrorCode.CIRCULAR_DEPENDENCY: "Remove circular dependencies from item relationships",
}

# Per status-bearing table: the status that requires completed_at
COMPLETION_STATUS = {"lists": "completed", "items": "completed"}


class _ScanFindings:
    """Violations and warnings produced by one sub-scan."""

    def __init__(self) -> None:
        self.errors: list[IntegrityViolation] = []
        self.warnings: list[IntegrityWarning] = []
        self.records_scanned = 0


class IntegrityMonitor:
    """
    Runs integrity scans over a DataAccess.

    Args:
        data_access: Store to scan
        foreign_key_manager: Source of referential integrity results
        rule_engine: Engine whose rules are re-run over stored records
        registry: Model validators whose constraints are re-run over stored records
    """

    def __init__(
        self,
        data_access: DataAccess,
        foreign_key_manager: ForeignKeyManager,
        rule_engine: BusinessRuleEngine,
        registry: ValidationRegistry | None = None,
    ):
        self.data_access = data_access
        self.foreign_key_manager = foreign_key_manager
        self.rule_engine = rule_engine
        self.registry = registry or ValidationRegistry()
        self._scheduled_checks: dict[str, ScheduledCheckConfig] = {}

    # =======================
    # SCAN
    # =======================

    async def perform_integrity_check(self, config: IntegrityCheckConfig | None = None) -> IntegrityMonitorResult:
        """
        Run the categories selected by ``config`` and merge their findings.

        Args:
            config: Categories, tables and batching; every category by default

        Returns:
            IntegrityMonitorResult with summary, health score and recommendations
        """
        config = config or IntegrityCheckConfig()
        started = time.perf_counter()
        result = IntegrityMonitorResult(timestamp=datetime.now(timezone.utc))
        tables = list(config.tables or DEFAULT_TABLES)
        cap_hit = False

        categories: list[tuple[bool, str, ViolationType, Callable[[IntegrityCheckConfig], Awaitable[_ScanFindings]]]] = [
            (config.check_foreign_keys, "foreign_keys", ViolationType.FOREIGN_KEY, self._check_foreign_keys),
            (config.check_business_rules, "business_rules", ViolationType.BUSINESS_RULE, self._check_business_rules),
            (config.check_orphans, "orphans", ViolationType.ORPHAN, self._check_orphans),
            (config.check_circular_references, "circular_references", ViolationType.CIRCULAR_REF, self._check_circular_references),
            (config.check_data_consistency, "data_consistency", ViolationType.DATA_CONSISTENCY, self._check_data_consistency),
            (config.check_constraints, "constraints", ViolationType.CONSTRAINT, self._check_constraints),
        ]

        async with log_operation("integrity_check", logger=logger, tables=tables):
            for enabled, name, violation_type, scan in categories:
                if not enabled:
                    continue
                try:
                    findings = await scan(config)
                except Exception as e:
                    logger.error(
                        f"Integrity check category '{name}' failed",
                        extra={"category": name},
                        exc_info=True,
                    )
                    result.success = False
                    findings = _ScanFindings()
                    findings.errors.append(
                        IntegrityViolation(
                            type=violation_type,
                            severity=ViolationSeverity.CRITICAL,
                            table="system",
                            record_id=name,
                            message=f"Integrity check '{name}' failed: {e}",
                            details={"category": name, "error_type": type(e).__name__},
                        )
                    )

                result.checks_performed += 1
                result.summary.total_records += findings.records_scanned
                result.warnings.extend(findings.warnings)
                for violation in findings.errors:
                    if config.max_errors is not None and len(result.errors) >= config.max_errors:
                        cap_hit = True
                        break
                    result.errors.append(violation)

        if cap_hit:
            result.warnings.append(
                IntegrityWarning(
                    type=ViolationType.DATA_CONSISTENCY,
                    table="system",
                    message=f"Violation limit of {config.max_errors} reached; further violations were not recorded",
                    details={"max_errors": config.max_errors},
                )
            )

        result.violations_found = len(result.errors)
        result.summary.tables_checked = tables
        result.summary.violations_by_type = self._count_by(result.errors, "type")
        result.summary.violations_by_severity = self._count_by(result.errors, "severity")
        result.summary.health_score = self.calculate_health_score(result)
        result.summary.recommendations = self.generate_recommendations(result)
        result.duration_ms = (time.perf_counter() - started) * 1000.0

        record_integrity_check(result)
        logger.info(
            "Integrity check finished",
            extra={
                "success": result.success,
                "violations_found": result.violations_found,
                "warnings": len(result.warnings),
                "health_score": result.summary.health_score,
            },
        )
        return result

    @staticmethod
    def _count_by(violations: list[IntegrityViolation], attr: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for violation in violations:
            key = getattr(violation, attr).value
            counts[key] = counts.get(key, 0) + 1
        return counts

    @staticmethod
    def calculate_health_score(result: IntegrityMonitorResult) -> int:
        """100 minus the severity-weighted penalty, floored at 0."""
        penalty = sum(SEVERITY_WEIGHTS[v.severity] for v in result.errors)
        penalty += len(result.warnings) * WARNING_WEIGHT
        return max(0, 100 - penalty)

    @staticmethod
    def generate_recommendations(result: IntegrityMonitorResult) -> list[str]:
        recommendations = []
        if any(v.severity == ViolationSeverity.CRITICAL for v in result.errors):
            recommendations.append("Address critical integrity violations immediately")
        if any(v.type == ViolationType.FOREIGN_KEY for v in result.errors):
            recommendations.append("Review and fix foreign key constraint violations")
        if any(v.type == ViolationType.CIRCULAR_REF for v in result.errors):
            recommendations.append("Resolve circular references in data relationships")
        if result.summary.health_score < 80:
            recommendations.append("Consider running integrity checks more frequently")
        if len(result.warnings) > 10:
            recommendations.append("Review data quality processes to reduce warnings")
        return recommendations

    # =======================
    # CATEGORIES
    # =======================

    async def _check_foreign_keys(self, config: IntegrityCheckConfig) -> _ScanFindings:
        findings = _ScanFindings()
        for check in await self.foreign_key_manager.check_referential_integrity(config.batch_size):
            if check.error is not None:
                findings.errors.append(
                    IntegrityViolation(
                        type=ViolationType.FOREIGN_KEY,
                        severity=ViolationSeverity.CRITICAL,
                        table="system",
                        record_id=check.constraint,
                        message=f"Foreign key check failed for constraint '{check.constraint}': {check.error}",
                        details={"constraint": check.constraint},
                    )
                )
            for violation in check.violations:
                findings.errors.append(
                    IntegrityViolation(
                        type=ViolationType.FOREIGN_KEY,
                        severity=ViolationSeverity.HIGH,
                        table=violation.source_table,
                        record_id=violation.source_id,
                        message=violation.message,
                        details={
                            "constraint": check.constraint,
                            "target_table": violation.target_table,
                            "target_id": violation.target_id,
                            "violation_type": violation.violation_type.value,
                        },
                        suggested_fix=REFERENCE_FIXES.get(
                            violation.violation_type.value, "Review and fix data integrity issue"
                        ).format(target_table=violation.target_table),
                    )
                )
        return findings

    async def _check_business_rules(self, config: IntegrityCheckConfig) -> _ScanFindings:
        findings = _ScanFindings()
        context = ValidationContext(operation=ValidationOperation.UPDATE)

        for table in config.tables or DEFAULT_TABLES:
            model_name = TABLE_MODELS.get(table, table)
            async for batch in self.data_access.iter_records(table, config.batch_size):
                for record in batch:
                    findings.records_scanned += 1
                    record_id = str(record.get("id"))
                    outcome = await self.rule_engine.execute_rules(
                        model_name, record, context.model_copy(update={"record_id": record_id})
                    )
                    for error in outcome.errors:
                        findings.errors.append(
                            IntegrityViolation(
                                type=ViolationType.BUSINESS_RULE,
                                severity=ViolationSeverity.MEDIUM,
                                table=table,
                                record_id=record_id,
                                field=error.field,
                                message=error.message,
                                details={"code": error.code.value, **error.context},
                                suggested_fix=BUSINESS_RULE_FIXES.get(
                                    error.code, "Review business rule violation and correct data"
                                ),
                            )
                        )
                    for warning in outcome.warnings:
                        findings.warnings.append(
                            IntegrityWarning(
                                type=ViolationType.BUSINESS_RULE,
                                table=table,
                                record_id=record_id,
                                message=warning.message,
                                details={"code": warning.code, **warning.context},
                            )
                        )
        return findings

    async def _check_orphans(self, config: IntegrityCheckConfig) -> _ScanFindings:
        findings = _ScanFindings()

        async for batch in self.data_access.iter_records("items", config.batch_size):
            for item in batch:
                findings.records_scanned += 1
                list_id = item.get("list_id")
                if list_id and not await self.data_access.list_exists(list_id):
                    findings.errors.append(
                        IntegrityViolation(
                            type=ViolationType.ORPHAN,
                            severity=ViolationSeverity.HIGH,
                            table="items",
                            record_id=str(item.get("id")),
                            field="list_id",
                            message=f"Item references non-existent list: {list_id}",
                            details={"list_id": list_id},
                            suggested_fix="Delete orphaned item or create missing list",
                        )
                    )

        async for batch in self.data_access.iter_records("sessions", config.batch_size):
            for session in batch:
                findings.records_scanned += 1
                agent_id = session.get("agent_id")
                if agent_id and not await self.data_access.user_exists(agent_id):
                    findings.warnings.append(
                        IntegrityWarning(
                            type=ViolationType.ORPHAN,
                            table="sessions",
                            record_id=str(session.get("id")),
                            message=f"Session references non-existent agent: {agent_id}",
                            details={"agent_id": agent_id},
                        )
                    )
        return findings

    async def _check_circular_references(self, config: IntegrityCheckConfig) -> _ScanFindings:
        findings = _ScanFindings()

        parents: dict[str, list[str]] = {}
        async for batch in self.data_access.iter_records("lists", config.batch_size):
            for record in batch:
                findings.records_scanned += 1
                parent_id = record.get("parent_list_id")
                parents[str(record.get("id"))] = [str(parent_id)] if parent_id else []

        for list_id, cycle in sorted(nodes_in_cycles(parents).items()):
            findings.errors.append(
                IntegrityViolation(
                    type=ViolationType.CIRCULAR_REF,
                    severity=ViolationSeverity.HIGH,
                    table="lists",
                    record_id=list_id,
                    field="parent_list_id",
                    message="List is part of circular hierarchy",
                    details={"parent_list_id": parents[list_id][0], "path": cycle},
                    suggested_fix="Break circular reference by updating parent relationship",
                )
            )

        dependencies: dict[str, list[str]] = {}
        async for batch in self.data_access.iter_records("items", config.batch_size):
            for record in batch:
                findings.records_scanned += 1
                dependencies[str(record.get("id"))] = [str(d) for d in record.get("dependencies") or []]

        for item_id, cycle in sorted(nodes_in_cycles(dependencies).items()):
            findings.errors.append(
                IntegrityViolation(
                    type=ViolationType.CIRCULAR_REF,
                    severity=ViolationSeverity.MEDIUM,
                    table="items",
                    record_id=item_id,
                    field="dependencies",
                    message="Item is part of circular dependency",
                    details={"dependencies": dependencies[item_id], "path": cycle},
                    suggested_fix="Remove circular dependency from item",
                )
            )
        return findings

    async def _check_data_consistency(self, config: IntegrityCheckConfig) -> _ScanFindings:
        findings = _ScanFindings()

        for table in config.tables or DEFAULT_TABLES:
            async for batch in self.data_access.iter_records(table, config.batch_size):
                for record in batch:
                    findings.records_scanned += 1
                    self._check_record_consistency(table, record, findings)
        return findings

    def _check_record_consistency(self, table: str, record: dict[str, Any], findings: _ScanFindings) -> None:
        record_id = str(record.get("id"))

        try:
            created_at = coerce_datetime(record.get("created_at"))
            stamps = {name: coerce_datetime(record.get(name)) for name in ("updated_at", "completed_at")}
        except InputValidationError as e:
            findings.warnings.append(
                IntegrityWarning(
                    type=ViolationType.DATA_CONSISTENCY,
                    table=table,
                    record_id=record_id,
                    message=f"Unparseable timestamp: {e}",
                )
            )
            return

        if created_at is not None:
            for name, stamp in stamps.items():
                if stamp is not None and stamp < created_at:
                    findings.warnings.append(
                        IntegrityWarning(
                            type=ViolationType.DATA_CONSISTENCY,
                            table=table,
                            record_id=record_id,
                            message=f"{name} is earlier than created_at",
                            details={"created_at": created_at.isoformat(), name: stamp.isoformat()},
                        )
                    )

        completion_status = COMPLETION_STATUS.get(table)
        status = record.get("status")
        if completion_status is None or status is None:
            return

        completed_at = stamps["completed_at"]
        if status == completion_status and completed_at is None:
            message = f"Record has status '{status}' but no completed_at"
        elif status != completion_status and completed_at is not None:
            message = f"Record has completed_at set but status '{status}'"
        else:
            return

        findings.errors.append(
            IntegrityViolation(
                type=ViolationType.DATA_CONSISTENCY,
                severity=ViolationSeverity.MEDIUM,
                table=table,
                record_id=record_id,
                field="completed_at",
                message=message,
                details={"status": status, "completed_at": completed_at.isoformat() if completed_at else None},
                suggested_fix="Update status or related fields to maintain consistency",
            )
        )

    async def _check_constraints(self, config: IntegrityCheckConfig) -> _ScanFindings:
        findings = _ScanFindings()

        for table in config.tables or DEFAULT_TABLES:
            validator = self.registry.get(TABLE_MODELS.get(table, table))
            if validator is None:
                continue
            async for batch in self.data_access.iter_records(table, config.batch_size):
                for record in batch:
                    findings.records_scanned += 1
                    record_id = str(record.get("id"))
                    context = ValidationContext(operation=ValidationOperation.UPDATE, record_id=record_id)
                    outcome = await validator.validate_constraints(record, context)
                    for error in outcome.errors:
                        findings.errors.append(
                            IntegrityViolation(
                                type=ViolationType.CONSTRAINT,
                                severity=ViolationSeverity.MEDIUM,
                                table=table,
                                record_id=record_id,
                                field=error.field,
                                message=error.message,
                                details={"code": error.code.value, **error.context},
                            )
                        )
        return findings

    # =======================
    # SCHEDULED CHECKS
    # =======================

    def add_scheduled_check(self, check: ScheduledCheckConfig) -> None:
        """Register (or replace) a scheduled check. The cron expression is validated by the model."""
        self._scheduled_checks[check.id] = check

    def remove_scheduled_check(self, check_id: str) -> None:
        self._scheduled_checks.pop(check_id, None)

    def get_scheduled_checks(self) -> list[ScheduledCheckConfig]:
        return list(self._scheduled_checks.values())
