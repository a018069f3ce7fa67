"""
Unit tests for condition evaluation.
"""

import asyncio
import re

import pytest
from hypothesis import given
from hypothesis import strategies as st

from taskguard.core.models import ConditionOperator, RuleCondition
from taskguard.core.rules import ConditionEvaluator, get_field_value


def cond(field, operator, value=None, **kwargs):
    return RuleCondition(field=field, operator=operator, value=value, **kwargs)


class TestGetFieldValue:
    """Tests for dot-path resolution"""

    def test_nested_path(self):
        """Test nested dict traversal"""
        assert get_field_value({"metadata": {"owner": {"id": "A1"}}}, "metadata.owner.id") == "A1"

    def test_missing_segment_returns_none(self):
        """Test a missing segment yields None instead of raising"""
        assert get_field_value({"metadata": {}}, "metadata.owner.id") is None
        assert get_field_value({"metadata": "flat"}, "metadata.owner") is None

    def test_empty_path_returns_data(self):
        """Test an empty path resolves to the payload itself"""
        data = {"a": 1}
        assert get_field_value(data, "") is data


class TestConditionEvaluator:
    """Tests for ConditionEvaluator operators"""

    @pytest.fixture
    def evaluator(self):
        return ConditionEvaluator()

    async def test_equals_and_not_equals(self, evaluator):
        """Test equality operators"""
        data = {"status": "completed"}
        assert await evaluator.evaluate(cond("status", ConditionOperator.EQUALS, "completed"), data)
        assert not await evaluator.evaluate(cond("status", ConditionOperator.NOT_EQUALS, "completed"), data)

    async def test_comparisons(self, evaluator):
        """Test greater_than / less_than on numbers"""
        data = {"estimated_duration": 120}
        assert await evaluator.evaluate(cond("estimated_duration", ConditionOperator.GREATER_THAN, 60), data)
        assert await evaluator.evaluate(cond("estimated_duration", ConditionOperator.LESS_THAN, 240), data)

    async def test_comparison_type_mismatch_is_false(self, evaluator):
        """Test incomparable values evaluate to False instead of raising"""
        data = {"estimated_duration": "soon"}
        assert not await evaluator.evaluate(cond("estimated_duration", ConditionOperator.GREATER_THAN, 60), data)
        assert not await evaluator.evaluate(cond("missing", ConditionOperator.LESS_THAN, 60), data)

    async def test_contains_on_lists_and_strings(self, evaluator):
        """Test contains on list membership and substrings"""
        data = {"tags": ["backend", "urgent"], "title": "Fix login bug"}
        assert await evaluator.evaluate(cond("tags", ConditionOperator.CONTAINS, "urgent"), data)
        assert await evaluator.evaluate(cond("title", ConditionOperator.CONTAINS, "login"), data)
        assert await evaluator.evaluate(cond("tags", ConditionOperator.NOT_CONTAINS, "frontend"), data)

    async def test_not_contains_on_missing_field(self, evaluator):
        """Test not_contains is True when the field is absent"""
        assert await evaluator.evaluate(cond("tags", ConditionOperator.NOT_CONTAINS, "x"), {})

    async def test_in_and_not_in(self, evaluator):
        """Test membership in the condition value"""
        data = {"priority": "high"}
        assert await evaluator.evaluate(cond("priority", ConditionOperator.IN, ["high", "urgent"]), data)
        assert not await evaluator.evaluate(cond("priority", ConditionOperator.NOT_IN, ["high", "urgent"]), data)
        assert not await evaluator.evaluate(cond("priority", ConditionOperator.IN, "high"), data)

    async def test_unhashable_values_against_sets(self, evaluator):
        """Test list values checked against a set are a non-match, not an error"""
        data = {"tags": ["backend"], "labels": {"backend", "urgent"}}
        assert not await evaluator.evaluate(cond("tags", ConditionOperator.IN, {"backend", "urgent"}), data)
        assert await evaluator.evaluate(cond("tags", ConditionOperator.NOT_IN, {"backend", "urgent"}), data)
        assert not await evaluator.evaluate(cond("labels", ConditionOperator.CONTAINS, ["backend"]), data)

    async def test_exists_honours_boolean_value(self, evaluator):
        """Test exists/not_exists and their False forms"""
        data = {"due_date": "2026-12-01", "assigned_to": None}
        assert await evaluator.evaluate(cond("due_date", ConditionOperator.EXISTS, True), data)
        assert not await evaluator.evaluate(cond("assigned_to", ConditionOperator.EXISTS, True), data)
        assert await evaluator.evaluate(cond("assigned_to", ConditionOperator.EXISTS, False), data)
        assert await evaluator.evaluate(cond("assigned_to", ConditionOperator.NOT_EXISTS, True), data)
        assert await evaluator.evaluate(cond("due_date", ConditionOperator.NOT_EXISTS, False), data)

    async def test_regex(self, evaluator):
        """Test regex search on strings only"""
        assert await evaluator.evaluate(cond("title", ConditionOperator.REGEX, r"^\[WIP\]"), {"title": "[WIP] draft"})
        assert not await evaluator.evaluate(cond("title", ConditionOperator.REGEX, r"draft"), {"title": 42})

    async def test_malformed_regex_raises(self, evaluator):
        """Test a broken pattern surfaces to the engine"""
        with pytest.raises(re.error):
            await evaluator.evaluate(cond("title", ConditionOperator.REGEX, "(unclosed"), {"title": "x"})

    async def test_custom_sync_and_async(self, evaluator):
        """Test custom predicates may be sync or async"""
        async def is_urgent(data, context):
            return data.get("priority") == "urgent"

        data = {"priority": "urgent"}
        assert await evaluator.evaluate(
            RuleCondition(operator=ConditionOperator.CUSTOM, custom_validator=lambda d, c: True), data
        )
        assert await evaluator.evaluate(
            RuleCondition(operator=ConditionOperator.CUSTOM, custom_validator=is_urgent), data
        )

    async def test_custom_without_predicate_is_true(self, evaluator):
        """Test a custom condition with no predicate never blocks"""
        assert await evaluator.evaluate(RuleCondition(operator=ConditionOperator.CUSTOM), {})

    @given(value=st.one_of(st.integers(), st.text(max_size=10), st.none()))
    def test_equals_matches_itself(self, value):
        """Test equals holds for any value compared with itself"""
        evaluator = ConditionEvaluator()
        condition = cond("field", ConditionOperator.EQUALS, value)
        assert asyncio.run(evaluator.evaluate(condition, {"field": value}))
