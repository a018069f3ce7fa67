"""
Unit tests for the built-in business rules.
"""

from datetime import datetime, timedelta, timezone

from taskguard.core.models import ValidationContext, ValidationErrorCode
from taskguard.core.rules import BusinessRuleEngine, build_system_rules, register_system_rules
from taskguard.storage.memory import InMemoryDataAccess


def deep_chain(depth):
    """Lists C1 > C2 > ... > C<depth>."""
    rows = [{"id": "C1", "title": "C1", "parent_list_id": None, "status": "active"}]
    for level in range(2, depth + 1):
        rows.append({"id": f"C{level}", "title": f"C{level}", "parent_list_id": f"C{level - 1}", "status": "active"})
    return InMemoryDataAccess({"lists": rows})


class TestBuildSystemRules:
    """Tests for rule definitions"""

    def test_rule_set_and_priorities(self, store):
        """Test the built-in rules and their priority order"""
        rules = build_system_rules(store)

        assert [(r.id, r.priority) for r in rules] == [
            ("list_max_depth", 100),
            ("data_retention_compliance", 95),
            ("item_dependency_completion", 90),
            ("user_workload_balance", 60),
            ("reasonable_due_date", 50),
        ]

    def test_register_is_idempotent(self, store):
        """Test registering twice leaves one copy of each rule"""
        engine = BusinessRuleEngine()
        register_system_rules(engine, store)
        register_system_rules(engine, store)

        assert len(engine.get_all_rules()) == 5
        assert [r.id for r in engine.get_rules_for_model("list")] == ["list_max_depth", "data_retention_compliance"]


class TestSystemRuleBehaviour:
    """Tests for rule outcomes against stored data"""

    async def test_list_depth_limit(self):
        """Test nesting under a level-5 list breaks the default limit"""
        store = deep_chain(5)
        engine = BusinessRuleEngine()
        register_system_rules(engine, store)

        allowed = await engine.execute_rules("list", {"title": "ok", "parent_list_id": "C4"})
        too_deep = await engine.execute_rules("list", {"title": "deep", "parent_list_id": "C5"})

        assert allowed.success is True
        assert too_deep.success is False
        assert too_deep.errors[0].field == "parent_list_id"
        assert too_deep.errors[0].context["rule_id"] == "list_max_depth"

    async def test_depth_limit_counts_moved_subtree(self):
        """Test re-parenting a list checks the levels of its descendants too"""
        store = deep_chain(3)
        store.insert("lists", {"id": "S1", "title": "S1", "parent_list_id": None, "status": "active"})
        store.insert("lists", {"id": "S2", "title": "S2", "parent_list_id": "S1", "status": "active"})
        store.insert("lists", {"id": "S3", "title": "S3", "parent_list_id": "S2", "status": "active"})
        engine = BusinessRuleEngine()
        register_system_rules(engine, store)

        moved = await engine.execute_rules("list", {"parent_list_id": "C3"}, ValidationContext(record_id="S1"))
        new = await engine.execute_rules("list", {"title": "leaf", "parent_list_id": "C3"})

        assert [e.context["rule_id"] for e in moved.errors] == ["list_max_depth"]
        assert new.success is True

    async def test_depth_threshold_is_configurable(self):
        """Test max_list_depth changes the limit"""
        store = deep_chain(2)
        engine = BusinessRuleEngine()
        register_system_rules(engine, store, max_list_depth=2)

        result = await engine.execute_rules("list", {"title": "x", "parent_list_id": "C2"})

        assert result.success is False

    async def test_item_cannot_complete_with_open_dependency(self, seeded_store):
        """Test completion is blocked while a dependency is not completed"""
        engine = BusinessRuleEngine()
        register_system_rules(engine, seeded_store)

        blocked = await engine.execute_rules("item", {"status": "completed", "dependencies": ["I1", "I2"]})
        allowed = await engine.execute_rules("item", {"status": "completed", "dependencies": ["I1"]})

        assert blocked.errors[0].code == ValidationErrorCode.BUSINESS_RULE_VIOLATION
        assert blocked.errors[0].context["rule_id"] == "item_dependency_completion"
        assert allowed.success is True

    async def test_workload_warning(self):
        """Test assigning beyond the threshold produces a warning only"""
        items = [
            {"id": f"W{i}", "list_id": "L1", "title": f"t{i}", "status": "pending", "assigned_to": "A1"}
            for i in range(3)
        ]
        store = InMemoryDataAccess({"items": items, "agents": [{"id": "A1", "name": "a"}]})
        engine = BusinessRuleEngine()
        register_system_rules(engine, store, workload_threshold=2)

        result = await engine.execute_rules("item", {"title": "one more", "assigned_to": "A1"})

        assert result.success is True
        assert [w.code for w in result.warnings] == ["HIGH_USER_WORKLOAD"]

    async def test_completed_items_do_not_count_toward_workload(self):
        """Test only open items are counted"""
        items = [
            {"id": f"W{i}", "list_id": "L1", "title": f"t{i}", "status": "completed", "assigned_to": "A1"}
            for i in range(5)
        ]
        engine = BusinessRuleEngine()
        register_system_rules(engine, InMemoryDataAccess({"items": items}), workload_threshold=2)

        result = await engine.execute_rules("item", {"title": "x", "assigned_to": "A1"})

        assert result.warnings == []

    async def test_unreasonable_due_dates(self, store):
        """Test past and far-future due dates warn, near ones do not"""
        engine = BusinessRuleEngine()
        register_system_rules(engine, store)
        now = datetime.now(timezone.utc)

        past = await engine.execute_rules("item", {"due_date": now - timedelta(days=3)})
        distant = await engine.execute_rules("item", {"due_date": (now + timedelta(days=400)).isoformat()})
        near = await engine.execute_rules("item", {"due_date": now + timedelta(days=7)})

        assert [w.code for w in past.warnings] == ["UNREASONABLE_DUE_DATE"]
        assert [w.code for w in distant.warnings] == ["UNREASONABLE_DUE_DATE"]
        assert near.warnings == []

    async def test_retention_policy_is_pluggable(self, store):
        """Test deleting is refused when the retention policy says so"""
        engine = BusinessRuleEngine()
        register_system_rules(engine, store, retention_policy=lambda data, context: data.get("id") != "KEEP")

        refused = await engine.execute_rules("list", {"id": "KEEP", "status": "deleted"}, ValidationContext())
        allowed = await engine.execute_rules("list", {"id": "TMP", "status": "deleted"})

        assert refused.errors[0].code == ValidationErrorCode.BUSINESS_RULE_VIOLATION
        assert refused.errors[0].context["rule_code"] == "DATA_RETENTION_VIOLATION"
        assert allowed.success is True
