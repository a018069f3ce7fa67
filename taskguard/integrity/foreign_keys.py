"""
Foreign-key constraint registry with reference validation, read-only
cascade analysis and referential integrity sweeps.
"""

from typing import Any

from taskguard.core.models import (
    AffectedRecord,
    CascadeOperation,
    CascadeResult,
    ForeignKeyConstraint,
    ReferenceCheckResult,
    ReferentialAction,
    ReferenceViolation,
    ReferenceViolationType,
    ValidationError,
    ValidationErrorCode,
    ValidationResult,
)
from taskguard.integrity.graph import nodes_in_cycles
from taskguard.observability.logger import get_logger
from taskguard.storage.base import DataAccess

logger = get_logger(__name__)

SYSTEM_CONSTRAINTS = [
    ForeignKeyConstraint(
        name="lists_parent_list_fk",
        source_table="lists",
        source_column="parent_list_id",
        target_table="lists",
        on_delete=ReferentialAction.CASCADE,
        on_update=ReferentialAction.CASCADE,
    ),
    ForeignKeyConstraint(
        name="items_list_fk",
        source_table="items",
        source_column="list_id",
        target_table="lists",
        on_delete=ReferentialAction.CASCADE,
        on_update=ReferentialAction.CASCADE,
    ),
    ForeignKeyConstraint(
        name="item_dependencies_item_fk",
        source_table="item_dependencies",
        source_column="item_id",
        target_table="items",
        on_delete=ReferentialAction.CASCADE,
        on_update=ReferentialAction.CASCADE,
    ),
    ForeignKeyConstraint(
        name="item_dependencies_depends_on_fk",
        source_table="item_dependencies",
        source_column="depends_on_item_id",
        target_table="items",
        on_delete=ReferentialAction.CASCADE,
        on_update=ReferentialAction.CASCADE,
    ),
    ForeignKeyConstraint(
        name="sessions_agent_fk",
        source_table="sessions",
        source_column="agent_id",
        target_table="agents",
        on_delete=ReferentialAction.SET_NULL,
        on_update=ReferentialAction.CASCADE,
    ),
    ForeignKeyConstraint(
        name="action_logs_agent_fk",
        source_table="action_logs",
        source_column="agent_id",
        target_table="agents",
        on_delete=ReferentialAction.SET_NULL,
        on_update=ReferentialAction.CASCADE,
    ),
]


class ForeignKeyManager:
    """
    Registry of foreign-key constraints checked against a DataAccess.

    Nothing here writes data: cascade analysis only predicts which records a
    delete would touch.
    """

    def __init__(self, data_access: DataAccess, register_system_constraints: bool = True):
        self.data_access = data_access
        self._constraints: dict[str, ForeignKeyConstraint] = {}
        if register_system_constraints:
            for constraint in SYSTEM_CONSTRAINTS:
                self.add_constraint(constraint.model_copy())

    # =======================
    # REGISTRY
    # =======================

    def add_constraint(self, constraint: ForeignKeyConstraint) -> None:
        self._constraints[constraint.name] = constraint

    def remove_constraint(self, name: str) -> None:
        self._constraints.pop(name, None)

    def get_constraint(self, name: str) -> ForeignKeyConstraint | None:
        return self._constraints.get(name)

    def get_all_constraints(self) -> list[ForeignKeyConstraint]:
        return list(self._constraints.values())

    def get_constraints_for_table(self, table: str) -> list[ForeignKeyConstraint]:
        """Constraints where ``table`` is either the source or the target."""
        return [c for c in self._constraints.values() if table in (c.source_table, c.target_table)]

    def validate_constraint_config(self, constraint: ForeignKeyConstraint) -> ValidationResult:
        """Check that a constraint definition names its tables and columns."""
        result = ValidationResult()
        if not constraint.name:
            result.add_error("name", ValidationErrorCode.REQUIRED_FIELD, "Constraint name is required")
        if not constraint.source_table or not constraint.target_table:
            result.add_error("tables", ValidationErrorCode.REQUIRED_FIELD, "Source and target tables are required")
        if not constraint.source_column or not constraint.target_column:
            result.add_error("columns", ValidationErrorCode.REQUIRED_FIELD, "Source and target columns are required")
        return result

    # =======================
    # CHECKS
    # =======================

    async def _reference_exists(self, constraint: ForeignKeyConstraint, value: Any) -> bool:
        if constraint.target_column == "id":
            return await self.data_access.record_exists(constraint.target_table, str(value))
        matches = await self.data_access.find_records(constraint.target_table, constraint.target_column, value)
        return bool(matches)

    async def validate_references(self, table: str, data: dict[str, Any]) -> ValidationResult:
        """
        Check every non-null foreign key of ``data`` (a row of ``table``).

        Returns:
            ValidationResult with one FOREIGN_KEY_VIOLATION per dangling reference
        """
        result = ValidationResult(data=data)
        for constraint in list(self._constraints.values()):
            if constraint.source_table != table:
                continue
            value = data.get(constraint.source_column)
            if value is None:
                continue
            if not await self._reference_exists(constraint, value):
                result.add_error(
                    constraint.source_column,
                    ValidationErrorCode.FOREIGN_KEY_VIOLATION,
                    f"Referenced {constraint.target_table}.{constraint.target_column} '{value}' does not exist",
                    constraint=constraint.name,
                    source_table=constraint.source_table,
                    target_table=constraint.target_table,
                    value=value,
                )
        return result

    async def analyze_cascade_delete(self, table: str, record_id: str) -> CascadeResult:
        """
        Predict the effect of deleting ``table.record_id``.

        Follows CASCADE constraints recursively (each record visited once),
        lists SET_NULL updates and reports RESTRICT constraints with
        dependents as FK_CONSTRAINT_ERROR. Never modifies data.
        """
        result = CascadeResult()
        try:
            await self._collect_cascade(table, record_id, result, visited={(table, record_id)})
        except Exception as e:
            logger.error(
                "Cascade analysis failed",
                extra={"table": table, "record_id": record_id},
                exc_info=True,
            )
            result.errors.append(
                ValidationError(
                    field="cascade",
                    code=ValidationErrorCode.VALIDATION_ERROR,
                    message=f"Cascade analysis failed: {e}",
                    severity="error",
                    context={"table": table, "record_id": record_id},
                )
            )
        return result

    async def _collect_cascade(
        self,
        table: str,
        record_id: str,
        result: CascadeResult,
        visited: set[tuple[str, str]],
    ) -> None:
        for constraint in list(self._constraints.values()):
            if constraint.target_table != table:
                continue

            dependents = await self.data_access.find_records(
                constraint.source_table, constraint.source_column, record_id
            )
            if not dependents:
                continue

            if constraint.on_delete == ReferentialAction.RESTRICT:
                result.errors.append(
                    ValidationError(
                        field=constraint.source_column,
                        code=ValidationErrorCode.FK_CONSTRAINT_ERROR,
                        message=(
                            f"Cannot delete {table}.{record_id}: referenced by "
                            f"{constraint.source_table}.{constraint.source_column}"
                        ),
                        severity="error",
                        context={
                            "constraint": constraint.name,
                            "dependent_table": constraint.source_table,
                            "dependent_records": len(dependents),
                        },
                    )
                )
                continue

            for record in dependents:
                dependent_id = str(record.get("id"))
                if constraint.on_delete == ReferentialAction.CASCADE:
                    key = (constraint.source_table, dependent_id)
                    if key in visited:
                        continue
                    visited.add(key)
                    await self._collect_cascade(constraint.source_table, dependent_id, result, visited)
                    result.affected_records.append(
                        AffectedRecord(
                            table=constraint.source_table,
                            id=dependent_id,
                            operation=CascadeOperation.DELETE,
                            old_value=record,
                        )
                    )
                elif constraint.on_delete == ReferentialAction.SET_NULL:
                    result.affected_records.append(
                        AffectedRecord(
                            table=constraint.source_table,
                            id=dependent_id,
                            operation=CascadeOperation.SET_NULL,
                            old_value=record.get(constraint.source_column),
                            new_value=None,
                        )
                    )

    async def check_referential_integrity(self, batch_size: int = 1000) -> list[ReferenceCheckResult]:
        """
        Sweep every constraint for dangling references and, on
        self-referencing constraints, reference cycles.

        A constraint whose sweep raises is reported with ``error`` set and
        the remaining constraints are still checked.
        """
        results = []
        for constraint in list(self._constraints.values()):
            check = ReferenceCheckResult(constraint=constraint.name)
            try:
                check.violations.extend(await self._find_orphans(constraint, batch_size))
                if constraint.is_self_referencing:
                    check.violations.extend(await self._find_reference_cycles(constraint, batch_size))
            except Exception as e:
                logger.error(
                    f"Referential integrity check failed for constraint '{constraint.name}'",
                    extra={"constraint": constraint.name},
                    exc_info=True,
                )
                check.error = str(e) or type(e).__name__
            results.append(check)
        return results

    async def _find_orphans(self, constraint: ForeignKeyConstraint, batch_size: int) -> list[ReferenceViolation]:
        violations = []
        async for batch in self.data_access.iter_records(constraint.source_table, batch_size):
            for record in batch:
                value = record.get(constraint.source_column)
                if value is None or await self._reference_exists(constraint, value):
                    continue
                violations.append(
                    ReferenceViolation(
                        source_table=constraint.source_table,
                        source_id=str(record.get("id")),
                        target_table=constraint.target_table,
                        target_id=str(value),
                        violation_type=ReferenceViolationType.ORPHANED_RECORD,
                        message=(
                            f"{constraint.source_table}.{constraint.source_column} references missing "
                            f"{constraint.target_table}.{constraint.target_column} '{value}'"
                        ),
                    )
                )
        return violations

    async def _find_reference_cycles(
        self,
        constraint: ForeignKeyConstraint,
        batch_size: int,
    ) -> list[ReferenceViolation]:
        edges: dict[str, list[str]] = {}
        async for batch in self.data_access.iter_records(constraint.source_table, batch_size):
            for record in batch:
                value = record.get(constraint.source_column)
                edges[str(record.get("id"))] = [str(value)] if value is not None else []

        violations = []
        for node, cycle in sorted(nodes_in_cycles(edges).items()):
            violations.append(
                ReferenceViolation(
                    source_table=constraint.source_table,
                    source_id=node,
                    target_table=constraint.target_table,
                    target_id=edges[node][0],
                    violation_type=ReferenceViolationType.CIRCULAR_REFERENCE,
                    message=f"{constraint.source_table} '{node}' is part of a reference cycle: {' -> '.join(cycle)}",
                )
            )
        return violations
