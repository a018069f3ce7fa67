"""
Foreign-key constraint definitions and the results of reference checks and
cascade analysis.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .validation_result import ValidationError


class ReferentialAction(str, Enum):
    CASCADE = "CASCADE"
    SET_NULL = "SET_NULL"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO_ACTION"


class ForeignKeyConstraint(BaseModel):
    """``source_table.source_column`` references ``target_table.target_column``."""

    name: str
    source_table: str
    source_column: str
    target_table: str
    target_column: str = "id"
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION
    deferrable: bool = False

    @property
    def is_self_referencing(self) -> bool:
        return self.source_table == self.target_table


class ReferenceViolationType(str, Enum):
    MISSING_REFERENCE = "MISSING_REFERENCE"
    ORPHANED_RECORD = "ORPHANED_RECORD"
    CIRCULAR_REFERENCE = "CIRCULAR_REFERENCE"


class ReferenceViolation(BaseModel):
    source_table: str
    source_id: str
    target_table: str
    target_id: str
    violation_type: ReferenceViolationType
    message: str


class ReferenceCheckResult(BaseModel):
    """Per-constraint outcome of a referential integrity sweep."""

    constraint: str
    violations: list[ReferenceViolation] = Field(default_factory=list)
    error: str | None = None

    @property
    def is_valid(self) -> bool:
        return not self.violations and self.error is None


class CascadeOperation(str, Enum):
    DELETE = "DELETE"
    UPDATE = "UPDATE"
    SET_NULL = "SET_NULL"


class AffectedRecord(BaseModel):
    table: str
    id: str
    operation: CascadeOperation
    old_value: Any = None
    new_value: Any = None


class CascadeResult(BaseModel):
    """Read-only prediction of what deleting one record would touch."""

    affected_records: list[AffectedRecord] = Field(default_factory=list)
    errors: list[ValidationError] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
