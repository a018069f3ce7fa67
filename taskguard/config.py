"""
Validation system configuration.

Settings come from keyword arguments or, through ``from_env()``, from
``TASKGUARD_*`` environment variables. Database settings are read by
``AsyncDatabaseConnectionPool`` from the ``DB_*`` variables.
"""

import os
from typing import Any

from pydantic import BaseModel, Field, ValidationError

ENV_PREFIX = "TASKGUARD_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class ConfigurationError(Exception):
    """Raised for invalid configuration or an operation disabled by configuration."""


class ValidationSystemConfig(BaseModel):
    """
    Feature flags and thresholds for a ValidationSystem.

    Attributes:
        enable_foreign_key_checks: Run reference validation and cascade analysis
        enable_business_rules: Run the business rule engine
        enable_integrity_monitoring: Allow integrity scans
        scheduled_checks: Register the nightly integrity check on initialize
        max_list_depth: Deepest allowed list level (root list is level 1)
        long_task_threshold_minutes: Estimated duration above which a warning is raised
        workload_threshold: Open assigned items per user before a warning
        integrity_batch_size: Records fetched per page during integrity scans
        operation_timeout_seconds: Deadline for one validate call
        rules_path: Optional YAML file with additional business rules
    """

    enable_foreign_key_checks: bool = True
    enable_business_rules: bool = True
    enable_integrity_monitoring: bool = True
    scheduled_checks: bool = False
    max_list_depth: int = Field(5, ge=1, le=100)
    long_task_threshold_minutes: int = Field(2400, ge=1)
    workload_threshold: int = Field(20, ge=0)
    integrity_batch_size: int = Field(1000, ge=1, le=10000)
    operation_timeout_seconds: float = Field(30.0, gt=0)
    rules_path: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "enable_foreign_key_checks": True,
                "enable_business_rules": True,
                "enable_integrity_monitoring": True,
                "max_list_depth": 5,
                "workload_threshold": 20,
                "rules_path": "config/rules.yaml",
            }
        }

    @classmethod
    def from_env(cls, **overrides: Any) -> "ValidationSystemConfig":
        """
        Build a config from ``TASKGUARD_<FIELD>`` environment variables.

        Explicit keyword overrides win over the environment.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        values: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            if field.annotation is bool:
                values[name] = _parse_bool(name, raw)
            else:
                values[name] = raw
        values.update(overrides)

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid taskguard configuration: {e}") from e


def _parse_bool(name: str, raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{ENV_PREFIX}{name.upper()} must be a boolean, got '{raw}'")
