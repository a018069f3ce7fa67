"""
Business rule evaluation: conditions, the rule engine, built-in rules and
YAML rule configuration.
"""

from .conditions import ConditionEvaluator, get_field_value
from .rule_config import RuleConfigBuilder, RuleConfigError, RuleConfigLoader
from .rule_engine import BusinessRuleEngine
from .system_rules import build_system_rules, register_system_rules

__all__ = [
    "BusinessRuleEngine",
    "ConditionEvaluator",
    "RuleConfigBuilder",
    "RuleConfigError",
    "RuleConfigLoader",
    "build_system_rules",
    "get_field_value",
    "register_system_rules",
]
