"""
Integrity scan models: violations, warnings, scan configuration, the scan
result with its derived summary, and scheduled check definitions.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

# Allowed value range per cron field: minute, hour, day of month, month, day of week
CRON_FIELD_RANGES = [(0, 59), (0, 23), (1, 31), (1, 12), (0, 7)]


class ViolationType(str, Enum):
    FOREIGN_KEY = "FOREIGN_KEY"
    BUSINESS_RULE = "BUSINESS_RULE"
    CONSTRAINT = "CONSTRAINT"
    ORPHAN = "ORPHAN"
    CIRCULAR_REF = "CIRCULAR_REF"
    DATA_CONSISTENCY = "DATA_CONSISTENCY"


class ViolationSeverity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IntegrityViolation(BaseModel):
    """
    One concrete violation found by a scan.

    Attributes:
        type: Category of the violation
        severity: critical, high, medium or low
        table: Table the offending record lives in ("system" for scan faults)
        record_id: Offending record id
        field: Offending column, when known
        message: Human-readable description
        details: Structured diagnostic payload
        suggested_fix: Remediation hint
    """

    type: ViolationType
    severity: ViolationSeverity
    table: str
    record_id: str
    field: str | None = None
    message: str
    details: dict[str, Any] = Field(default_factory=dict)
    suggested_fix: str | None = None


class IntegrityWarning(BaseModel):
    type: ViolationType
    table: str
    record_id: str | None = None
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class IntegritySummary(BaseModel):
    total_records: int = 0
    tables_checked: list[str] = Field(default_factory=list)
    violations_by_type: dict[str, int] = Field(default_factory=dict)
    violations_by_severity: dict[str, int] = Field(default_factory=dict)
    health_score: int = Field(100, ge=0, le=100)
    recommendations: list[str] = Field(default_factory=list)


class IntegrityCheckConfig(BaseModel):
    """
    Selects the categories an integrity scan runs and bounds its work.

    Attributes:
        tables: Tables scanned record by record (defaults to lists, items, agents)
        batch_size: Records fetched per page
        max_errors: Stop collecting violations after this many
    """

    check_foreign_keys: bool = True
    check_business_rules: bool = True
    check_constraints: bool = True
    check_orphans: bool = True
    check_circular_references: bool = True
    check_data_consistency: bool = True
    tables: list[str] | None = None
    batch_size: int = Field(1000, ge=1, le=10000)
    max_errors: int | None = Field(None, ge=1)

    @classmethod
    def all_checks(cls, **overrides: Any) -> "IntegrityCheckConfig":
        """Configuration with every category enabled."""
        return cls(**overrides)


class IntegrityMonitorResult(BaseModel):
    """
    Aggregated outcome of one integrity scan.

    ``success`` is False only when a check category itself failed to run.
    ``violations_found`` always equals ``len(errors)``.
    """

    success: bool = True
    checks_performed: int = 0
    violations_found: int = 0
    errors: list[IntegrityViolation] = Field(default_factory=list)
    warnings: list[IntegrityWarning] = Field(default_factory=list)
    summary: IntegritySummary = Field(default_factory=IntegritySummary)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: float = 0.0


def validate_cron_expression(expression: str) -> str:
    """
    Validate a 5-field cron expression (minute hour day month weekday).

    Supports ``*``, ``*/n``, ranges ``a-b`` (optionally ``/n``) and comma lists.

    Raises:
        ValueError: If the expression is malformed or out of range
    """
    fields = expression.split()
    if len(fields) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {len(fields)}: '{expression}'")

    for field, (low, high) in zip(fields, CRON_FIELD_RANGES):
        for part in field.split(","):
            base, _, step = part.partition("/")
            if step and (not step.isdigit() or int(step) == 0):
                raise ValueError(f"Invalid cron step '{part}' in '{expression}'")
            if base == "*":
                continue
            bounds = base.split("-")
            if len(bounds) > 2 or not all(b.isdigit() for b in bounds):
                raise ValueError(f"Invalid cron field '{part}' in '{expression}'")
            values = [int(b) for b in bounds]
            if any(v < low or v > high for v in values):
                raise ValueError(f"Cron value '{part}' out of range {low}-{high} in '{expression}'")
            if len(values) == 2 and values[0] > values[1]:
                raise ValueError(f"Invalid cron range '{part}' in '{expression}'")

    return expression


class ScheduledCheckConfig(BaseModel):
    """
    A named, cron-scheduled integrity check. Triggering is left to an
    external scheduler; the monitor only keeps the registry.
    """

    id: str = Field(..., min_length=1)
    name: str
    schedule: str
    config: IntegrityCheckConfig = Field(default_factory=IntegrityCheckConfig)
    enabled: bool = True
    last_run: datetime | None = None
    next_run: datetime | None = None

    @field_validator("schedule")
    @classmethod
    def check_schedule(cls, v: str) -> str:
        return validate_cron_expression(v.strip())

    class Config:
        json_schema_extra = {
            "example": {
                "id": "nightly",
                "name": "Nightly full scan",
                "schedule": "0 2 * * *",
                "config": {"batch_size": 500},
                "enabled": True,
            }
        }
