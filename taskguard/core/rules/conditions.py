"""
Condition evaluation for business rules.

A condition compares the value found at a dot-notation field path with the
condition's ``value`` using one of the closed set of operators.
"""

import inspect
import re
from typing import Any

from taskguard.core.models import ConditionOperator, RuleCondition

_MISSING = object()


def get_field_value(data: Any, path: str) -> Any:
    """
    Resolve a dot-notation path inside nested dicts.

    Traversal through a missing or non-dict segment yields None.

    Examples:
        >>> get_field_value({"a": {"b": 1}}, "a.b")
        1
        >>> get_field_value({"a": None}, "a.b") is None
        True
    """
    if not path:
        return data

    current = data
    for segment in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(segment, _MISSING)
        if current is _MISSING:
            return None
    return current


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, otherwise return it as is."""
    if inspect.isawaitable(value):
        return await value
    return value


class ConditionEvaluator:
    """
    Evaluates RuleConditions against a payload.

    ``evaluate`` never raises for well-formed conditions: type mismatches
    resolve to False (or True for the negated containment operators). A
    malformed regex pattern raises ``re.error`` for the caller to handle.
    """

    async def evaluate(self, condition: RuleCondition, data: dict[str, Any], context: Any = None) -> bool:
        operator = condition.operator
        expected = condition.value

        if operator == ConditionOperator.CUSTOM:
            if condition.custom_validator is None:
                return True
            return bool(await maybe_await(condition.custom_validator(data, context)))

        actual = get_field_value(data, condition.field)

        if operator == ConditionOperator.EQUALS:
            return actual == expected
        if operator == ConditionOperator.NOT_EQUALS:
            return actual != expected
        if operator == ConditionOperator.GREATER_THAN:
            return self._compare(actual, expected, greater=True)
        if operator == ConditionOperator.LESS_THAN:
            return self._compare(actual, expected, greater=False)
        if operator == ConditionOperator.CONTAINS:
            return self._contains(actual, expected)
        if operator == ConditionOperator.NOT_CONTAINS:
            return not self._contains(actual, expected)
        if operator == ConditionOperator.IN:
            return self._member_of(actual, expected)
        if operator == ConditionOperator.NOT_IN:
            return not self._member_of(actual, expected)
        if operator == ConditionOperator.EXISTS:
            present = actual is not None
            return present if expected is not False else not present
        if operator == ConditionOperator.NOT_EXISTS:
            absent = actual is None
            return absent if expected is not False else not absent
        if operator == ConditionOperator.REGEX:
            if not isinstance(actual, str) or not isinstance(expected, str):
                return False
            return re.search(expected, actual) is not None

        raise ValueError(f"Unsupported condition operator: {operator}")

    @staticmethod
    def _compare(actual: Any, expected: Any, greater: bool) -> bool:
        if actual is None or expected is None:
            return False
        try:
            return actual > expected if greater else actual < expected
        except TypeError:
            return False

    @staticmethod
    def _contains(actual: Any, expected: Any) -> bool:
        if isinstance(actual, (list, tuple, set, frozenset)):
            try:
                return expected in actual
            except TypeError:
                # unhashable value against a set
                return False
        if isinstance(actual, str):
            return isinstance(expected, str) and expected in actual
        return False

    @staticmethod
    def _member_of(actual: Any, expected: Any) -> bool:
        if not isinstance(expected, (list, tuple, set, frozenset)):
            return False
        try:
            return actual in expected
        except TypeError:
            return False
