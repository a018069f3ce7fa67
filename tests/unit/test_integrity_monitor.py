"""
Unit tests for IntegrityMonitor.
"""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as SchemaError

from taskguard.core.models import (
    IntegrityCheckConfig,
    IntegrityMonitorResult,
    IntegrityViolation,
    IntegrityWarning,
    ScheduledCheckConfig,
    ViolationSeverity,
    ViolationType,
)
from taskguard.core.rules import BusinessRuleEngine, register_system_rules
from taskguard.core.validators import AgentValidator, ItemValidator, ListValidator, ValidationRegistry
from taskguard.integrity import ForeignKeyManager, IntegrityMonitor
from taskguard.observability.metrics import REGISTRY
from taskguard.storage.memory import InMemoryDataAccess

CATEGORIES = [
    "check_foreign_keys",
    "check_business_rules",
    "check_orphans",
    "check_circular_references",
    "check_data_consistency",
    "check_constraints",
]

CREATED = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FailingStore(InMemoryDataAccess):
    """Store whose paging over one table always raises."""

    def __init__(self, failing_table, **kwargs):
        super().__init__(**kwargs)
        self.failing_table = failing_table

    async def fetch_batch(self, table, limit, offset=0):
        if table == self.failing_table:
            raise ConnectionError("storage unavailable")
        return await super().fetch_batch(table, limit, offset)


def build_monitor(store):
    engine = BusinessRuleEngine()
    register_system_rules(engine, store)
    registry = ValidationRegistry()
    registry.register("list", ListValidator(store))
    registry.register("item", ItemValidator(store))
    registry.register("agent", AgentValidator(store))
    return IntegrityMonitor(store, ForeignKeyManager(store), engine, registry)


def only(category, **overrides):
    """Config running a single category."""
    flags = {name: name == category for name in CATEGORIES}
    return IntegrityCheckConfig(**flags, **overrides)


def violation(severity, violation_type=ViolationType.FOREIGN_KEY):
    return IntegrityViolation(type=violation_type, severity=severity, table="items", record_id="X", message="m")


class TestFullScan:
    """Tests for a scan over every category"""

    async def test_consistent_store_is_healthy(self, seeded_store):
        """Test a consistent store scores 100 with no findings"""
        result = await build_monitor(seeded_store).perform_integrity_check()

        assert result.success is True
        assert result.errors == []
        assert result.warnings == []
        assert result.checks_performed == 6
        assert result.summary.health_score == 100
        assert result.summary.recommendations == []
        assert result.summary.tables_checked == ["lists", "items", "agents"]
        assert result.summary.total_records > 0

    async def test_violations_found_matches_errors(self, seeded_store):
        """Test the violation count and the summary breakdowns agree with the error list"""
        seeded_store.insert("items", {"id": "I9", "list_id": "GONE", "title": "lost", "created_at": CREATED})

        result = await build_monitor(seeded_store).perform_integrity_check()

        assert result.violations_found == len(result.errors) > 0
        assert sum(result.summary.violations_by_type.values()) == len(result.errors)
        assert sum(result.summary.violations_by_severity.values()) == len(result.errors)

    async def test_failing_category_is_isolated(self):
        """Test a category that raises becomes one critical violation and the rest still run"""
        store = FailingStore("sessions", tables={"items": [{"id": "I9", "list_id": "GONE", "title": "t"}]})

        result = await build_monitor(store).perform_integrity_check()

        critical = [(v.table, v.record_id) for v in result.errors if v.severity == ViolationSeverity.CRITICAL]
        assert result.success is False
        assert result.checks_performed == 6
        assert ("system", "orphans") in critical
        assert ("system", "sessions_agent_fk") in critical
        assert any(v.type == ViolationType.CONSTRAINT for v in result.errors)
        assert "Address critical integrity violations immediately" in result.summary.recommendations

    async def test_max_errors_caps_violations(self):
        """Test collection stops at max_errors and a warning says so"""
        items = [{"id": f"I{n}", "list_id": "GONE", "title": f"t{n}"} for n in range(5)]
        monitor = build_monitor(InMemoryDataAccess({"items": items}))

        result = await monitor.perform_integrity_check(IntegrityCheckConfig(max_errors=3))

        assert result.violations_found == 3
        assert result.warnings[-1].table == "system"
        assert result.warnings[-1].details == {"max_errors": 3}

    async def test_disabled_categories_do_not_run(self, seeded_store):
        """Test only the selected categories are counted"""
        result = await build_monitor(seeded_store).perform_integrity_check(only("check_orphans"))

        assert result.checks_performed == 1

    async def test_scan_updates_metrics(self, seeded_store):
        """Test the scan outcome is exported"""
        before = REGISTRY.get_sample_value("taskguard_integrity_checks_total", {"status": "success"}) or 0

        await build_monitor(seeded_store).perform_integrity_check()

        assert REGISTRY.get_sample_value("taskguard_integrity_checks_total", {"status": "success"}) == before + 1
        assert REGISTRY.get_sample_value("taskguard_integrity_health_score") == 100


class TestCategories:
    """Tests for individual check categories"""

    async def test_foreign_key_orphans(self):
        """Test dangling references are high-severity foreign key violations"""
        store = InMemoryDataAccess({"items": [{"id": "I9", "list_id": "GONE", "title": "t"}]})

        result = await build_monitor(store).perform_integrity_check(only("check_foreign_keys"))

        assert [(v.type, v.severity, v.record_id) for v in result.errors] == [
            (ViolationType.FOREIGN_KEY, ViolationSeverity.HIGH, "I9")
        ]
        assert result.errors[0].suggested_fix == "Delete orphaned record or restore missing reference"
        assert "Review and fix foreign key constraint violations" in result.summary.recommendations

    async def test_orphans(self):
        """Test orphaned items are errors and orphaned sessions are warnings"""
        store = InMemoryDataAccess(
            {
                "items": [{"id": "I9", "list_id": "GONE", "title": "t"}],
                "sessions": [{"id": "S1", "agent_id": "NOBODY"}],
            }
        )

        result = await build_monitor(store).perform_integrity_check(only("check_orphans"))

        assert [(v.type, v.severity, v.field) for v in result.errors] == [
            (ViolationType.ORPHAN, ViolationSeverity.HIGH, "list_id")
        ]
        assert [(w.type, w.record_id) for w in result.warnings] == [(ViolationType.ORPHAN, "S1")]

    async def test_circular_references(self):
        """Test list cycles are high severity and dependency cycles medium"""
        store = InMemoryDataAccess(
            {
                "lists": [
                    {"id": "A", "title": "a", "parent_list_id": "B"},
                    {"id": "B", "title": "b", "parent_list_id": "A"},
                ],
                "items": [
                    {"id": "X", "list_id": "A", "title": "x", "dependencies": ["Y"]},
                    {"id": "Y", "list_id": "A", "title": "y", "dependencies": ["X"]},
                ],
            }
        )

        result = await build_monitor(store).perform_integrity_check(only("check_circular_references"))

        assert [(v.table, v.record_id, v.severity) for v in result.errors] == [
            ("lists", "A", ViolationSeverity.HIGH),
            ("lists", "B", ViolationSeverity.HIGH),
            ("items", "X", ViolationSeverity.MEDIUM),
            ("items", "Y", ViolationSeverity.MEDIUM),
        ]
        assert result.summary.violations_by_type == {"CIRCULAR_REF": 4}
        assert result.summary.violations_by_severity == {"high": 2, "medium": 2}
        assert "Resolve circular references in data relationships" in result.summary.recommendations

    async def test_data_consistency(self):
        """Test timestamp ordering and status/completion mismatches"""
        store = InMemoryDataAccess(
            {
                "lists": [
                    {"id": "L1", "title": "done", "status": "completed", "created_at": CREATED},
                    {
                        "id": "L2",
                        "title": "open",
                        "status": "active",
                        "created_at": CREATED,
                        "completed_at": CREATED + timedelta(days=1),
                    },
                ],
                "items": [
                    {
                        "id": "I1",
                        "list_id": "L1",
                        "title": "early",
                        "status": "pending",
                        "created_at": CREATED,
                        "updated_at": CREATED - timedelta(days=1),
                    },
                    {"id": "I2", "list_id": "L1", "title": "garbled", "created_at": "not a date"},
                ],
            }
        )

        result = await build_monitor(store).perform_integrity_check(only("check_data_consistency"))

        assert [(v.record_id, v.field, v.severity) for v in result.errors] == [
            ("L1", "completed_at", ViolationSeverity.MEDIUM),
            ("L2", "completed_at", ViolationSeverity.MEDIUM),
        ]
        assert [(w.record_id, w.type) for w in result.warnings] == [
            ("I1", ViolationType.DATA_CONSISTENCY),
            ("I2", ViolationType.DATA_CONSISTENCY),
        ]

    async def test_business_rules_rerun(self, seeded_store):
        """Test stored records are re-checked against engine rules"""
        seeded_store.update("items", "I3", status="completed", completed_at=CREATED + timedelta(days=3))

        result = await build_monitor(seeded_store).perform_integrity_check(only("check_business_rules"))

        assert [(v.type, v.record_id, v.severity) for v in result.errors] == [
            (ViolationType.BUSINESS_RULE, "I3", ViolationSeverity.MEDIUM)
        ]
        assert result.errors[0].details["rule_id"] == "item_dependency_completion"

    async def test_constraints_rerun(self):
        """Test stored records are re-checked against model constraints"""
        store = InMemoryDataAccess(
            {
                "lists": [
                    {"id": "L1", "title": "Same", "parent_list_id": None, "status": "active"},
                    {"id": "L2", "title": "Same", "parent_list_id": None, "status": "active"},
                ]
            }
        )

        result = await build_monitor(store).perform_integrity_check(only("check_constraints"))

        assert [(v.type, v.record_id, v.field) for v in result.errors] == [
            (ViolationType.CONSTRAINT, "L1", "title"),
            (ViolationType.CONSTRAINT, "L2", "title"),
        ]
        assert result.errors[0].details["code"] == "DUPLICATE_VALUE"

    async def test_restricted_tables(self, seeded_store):
        """Test the tables option limits record-by-record scans"""
        result = await build_monitor(seeded_store).perform_integrity_check(
            only("check_data_consistency", tables=["agents"])
        )

        assert result.summary.tables_checked == ["agents"]
        assert result.summary.total_records == 1


class TestHealthScore:
    """Tests for health scoring and recommendations"""

    def test_weighted_penalty(self):
        """Test severities and warnings are weighted"""
        result = IntegrityMonitorResult(
            errors=[violation(ViolationSeverity.HIGH), violation(ViolationSeverity.LOW)],
            warnings=[IntegrityWarning(type=ViolationType.ORPHAN, table="sessions", message="w")],
        )

        assert IntegrityMonitor.calculate_health_score(result) == 88

    def test_score_floors_at_zero(self):
        """Test a penalty above 100 yields 0"""
        result = IntegrityMonitorResult(errors=[violation(ViolationSeverity.CRITICAL) for _ in range(6)])

        assert IntegrityMonitor.calculate_health_score(result) == 0

    def test_many_warnings_recommendation(self):
        """Test more than ten warnings suggests reviewing data quality"""
        result = IntegrityMonitorResult(
            warnings=[IntegrityWarning(type=ViolationType.ORPHAN, table="t", message="w") for _ in range(11)]
        )
        result.summary.health_score = IntegrityMonitor.calculate_health_score(result)

        assert IntegrityMonitor.generate_recommendations(result) == [
            "Review data quality processes to reduce warnings"
        ]

    def test_low_score_recommendation(self):
        """Test a score under 80 suggests more frequent checks"""
        result = IntegrityMonitorResult(errors=[violation(ViolationSeverity.HIGH, ViolationType.ORPHAN)] * 3)
        result.summary.health_score = IntegrityMonitor.calculate_health_score(result)

        assert IntegrityMonitor.generate_recommendations(result) == [
            "Consider running integrity checks more frequently"
        ]


class TestScheduledChecks:
    """Tests for the scheduled check registry"""

    def test_add_replace_remove(self, seeded_store):
        """Test checks are keyed by id"""
        monitor = build_monitor(seeded_store)

        monitor.add_scheduled_check(ScheduledCheckConfig(id="nightly", name="Nightly", schedule="0 2 * * *"))
        monitor.add_scheduled_check(ScheduledCheckConfig(id="nightly", name="Nightly v2", schedule="30 3 * * 1-5"))

        assert [c.name for c in monitor.get_scheduled_checks()] == ["Nightly v2"]

        monitor.remove_scheduled_check("nightly")
        assert monitor.get_scheduled_checks() == []

    @pytest.mark.parametrize("schedule", ["0 2 * *", "61 * * * *", "*/0 * * * *", "5-1 * * * *"])
    def test_invalid_cron_rejected(self, schedule):
        """Test malformed cron expressions fail model validation"""
        with pytest.raises(SchemaError):
            ScheduledCheckConfig(id="bad", name="Bad", schedule=schedule)
