"""
Rule configuration management.

Loads business rules from YAML files and provides a fluent builder for
defining rules in code.
"""

from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError as SchemaError

from taskguard.core.models import (
    ActionType,
    BusinessRule,
    ConditionOperator,
    RuleAction,
    RuleCategory,
    RuleCondition,
    RuleSeverity,
)
from taskguard.utils.validation import validate_file_path


class RuleConfigError(ValueError):
    """Raised when a rule configuration file is malformed."""
    pass


class RuleConfigLoader:
    """
    Loads business rules from YAML configuration files.

    Expected YAML format:
    ```yaml
    rules:
      - id: urgent_items_need_due_date
        name: Urgent items need a due date
        category: business_logic
        severity: warning
        priority: 40
        applies_to: [item]
        conditions:
          - field: priority
            operator: equals
            value: urgent
          - field: due_date
            operator: not_exists
            value: true
        actions:
          - type: block
            message: Urgent items should have a due date
            code: MISSING_DUE_DATE

      - id: normalize_title
        name: Normalize titles
        applies_to: [list, item]
        actions:
          - type: transform
            transform: strip_title      # looked up in the callables registry
    ```

    ``custom`` conditions name their predicate with ``validator``; validate
    actions name theirs with ``check``; transform actions with ``transform``.
    """

    def __init__(self, config_path: str | Path, callables: dict[str, Callable[..., Any]] | None = None):
        """
        Initialize the rule config loader.

        Args:
            config_path: Path to the YAML configuration file
            callables: Named predicates/transforms the file may reference
        """
        self.config_path = Path(validate_file_path(str(config_path), "rules_path"))
        if not self.config_path.exists():
            raise FileNotFoundError(f"Rule configuration file not found: {config_path}")
        self.callables = callables or {}

    def load_rules(self) -> list[BusinessRule]:
        """
        Load and parse business rules from the YAML file.

        Returns:
            List of BusinessRule objects, in file order

        Raises:
            RuleConfigError: If YAML is invalid or a rule is malformed
        """
        try:
            with open(self.config_path) as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise RuleConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if not config or "rules" not in config:
            raise RuleConfigError("Configuration file must contain 'rules' section")

        if not isinstance(config["rules"], list):
            raise RuleConfigError("'rules' must be a list of rule definitions")

        return [self._parse_rule(rule_def, idx) for idx, rule_def in enumerate(config["rules"])]

    def _parse_rule(self, rule_def: Any, idx: int) -> BusinessRule:
        """
        Parse a single rule definition.

        Raises:
            RuleConfigError: If the rule definition is invalid
        """
        if not isinstance(rule_def, dict):
            raise RuleConfigError(f"Rule #{idx} must be a mapping")

        if "id" not in rule_def:
            raise RuleConfigError(f"Rule #{idx} is missing 'id'")

        rule_id = rule_def["id"]

        if not rule_def.get("applies_to"):
            raise RuleConfigError(f"Rule '{rule_id}' must list at least one model in 'applies_to'")

        conditions = []
        for cond in rule_def.get("conditions", []):
            cond = dict(cond)
            if "validator" in cond:
                cond["custom_validator"] = self._resolve(rule_id, cond.pop("validator"))
            conditions.append(cond)

        actions = []
        for action in rule_def.get("actions", []):
            action = dict(action)
            if "params" in action:
                action["metadata"] = action.pop("params")
            for key in ("check", "transform"):
                if key in action:
                    action[key] = self._resolve(rule_id, action[key])
            actions.append(action)

        try:
            return BusinessRule(
                id=rule_id,
                name=rule_def.get("name", rule_id),
                description=rule_def.get("description", ""),
                category=rule_def.get("category", RuleCategory.BUSINESS_LOGIC),
                severity=rule_def.get("severity", RuleSeverity.ERROR),
                enabled=rule_def.get("enabled", True),
                priority=rule_def.get("priority", 0),
                applies_to=list(rule_def["applies_to"]),
                conditions=conditions,
                actions=actions,
                metadata=rule_def.get("metadata", {}),
            )
        except SchemaError as e:
            raise RuleConfigError(f"Invalid rule '{rule_id}': {e}") from e

    def _resolve(self, rule_id: str, name: str) -> Callable[..., Any]:
        if name not in self.callables:
            raise RuleConfigError(f"Rule '{rule_id}' references unknown callable '{name}'")
        return self.callables[name]


class RuleConfigBuilder:
    """
    Programmatically build a business rule (for testing or dynamic rules).

    Usage:
        rule = (
            RuleConfigBuilder("no_weekend_due", "No weekend due dates")
            .applies_to("item")
            .priority(30)
            .when("due_date", "exists", True)
            .validate(is_weekday, "Due date falls on a weekend", code="WEEKEND_DUE_DATE")
            .build()
        )
    """

    def __init__(self, rule_id: str, name: str | None = None):
        """Initialize an empty rule definition."""
        self._rule: dict[str, Any] = {
            "id": rule_id,
            "name": name or rule_id,
            "applies_to": [],
            "conditions": [],
            "actions": [],
        }

    def applies_to(self, *models: str) -> "RuleConfigBuilder":
        self._rule["applies_to"].extend(models)
        return self

    def describe(self, description: str) -> "RuleConfigBuilder":
        self._rule["description"] = description
        return self

    def category(self, category: RuleCategory | str) -> "RuleConfigBuilder":
        self._rule["category"] = category
        return self

    def severity(self, severity: RuleSeverity | str) -> "RuleConfigBuilder":
        self._rule["severity"] = severity
        return self

    def priority(self, priority: int) -> "RuleConfigBuilder":
        self._rule["priority"] = priority
        return self

    def disabled(self) -> "RuleConfigBuilder":
        self._rule["enabled"] = False
        return self

    def when(self, field: str, operator: ConditionOperator | str, value: Any = None) -> "RuleConfigBuilder":
        """Add a condition (all conditions must hold)."""
        self._rule["conditions"].append(RuleCondition(field=field, operator=operator, value=value))
        return self

    def when_custom(self, predicate: Callable[..., Any]) -> "RuleConfigBuilder":
        """Add a custom condition receiving ``(data, context)``."""
        self._rule["conditions"].append(
            RuleCondition(operator=ConditionOperator.CUSTOM, custom_validator=predicate)
        )
        return self

    def validate(
        self,
        check: Callable[..., Any] | None,
        message: str,
        code: str | None = None,
        **metadata: Any,
    ) -> "RuleConfigBuilder":
        """Add a validate action."""
        self._rule["actions"].append(
            RuleAction(type=ActionType.VALIDATE, check=check, message=message, code=code, metadata=metadata)
        )
        return self

    def transform(self, func: Callable[..., Any]) -> "RuleConfigBuilder":
        """Add a transform action returning a partial dict to merge."""
        self._rule["actions"].append(RuleAction(type=ActionType.TRANSFORM, transform=func))
        return self

    def log(self, message: str) -> "RuleConfigBuilder":
        self._rule["actions"].append(RuleAction(type=ActionType.LOG, message=message))
        return self

    def notify(self, message: str | None = None) -> "RuleConfigBuilder":
        self._rule["actions"].append(RuleAction(type=ActionType.NOTIFY, message=message))
        return self

    def block(self, message: str, code: str | None = None, **metadata: Any) -> "RuleConfigBuilder":
        """Add an unconditional failure."""
        self._rule["actions"].append(
            RuleAction(type=ActionType.BLOCK, message=message, code=code, metadata=metadata)
        )
        return self

    def build(self) -> BusinessRule:
        """Build and return the rule."""
        return BusinessRule(**self._rule)
