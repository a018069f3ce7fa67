"""
Unit tests for ValidationSystemConfig.
"""

import pytest

from taskguard.config import ConfigurationError, ValidationSystemConfig


class TestDefaults:
    """Tests for default configuration"""

    def test_defaults(self):
        """Test every feature is on and scheduling is off by default"""
        config = ValidationSystemConfig()

        assert config.enable_foreign_key_checks is True
        assert config.enable_business_rules is True
        assert config.enable_integrity_monitoring is True
        assert config.scheduled_checks is False
        assert config.max_list_depth == 5
        assert config.workload_threshold == 20
        assert config.long_task_threshold_minutes == 2400

    @pytest.mark.parametrize(
        "overrides",
        [{"max_list_depth": 0}, {"integrity_batch_size": 20000}, {"operation_timeout_seconds": 0}],
    )
    def test_bounds(self, overrides):
        """Test out-of-range thresholds are rejected"""
        with pytest.raises(ValueError):
            ValidationSystemConfig(**overrides)


class TestFromEnv:
    """Tests for environment-based configuration"""

    def test_from_env_file(self, test_env_vars):
        """Test TASKGUARD_* variables loaded from a .env file"""
        config = ValidationSystemConfig.from_env()

        assert test_env_vars["TASKGUARD_MAX_LIST_DEPTH"] == "3"
        assert config.enable_business_rules is False
        assert config.scheduled_checks is True
        assert config.max_list_depth == 3
        assert config.workload_threshold == 8
        assert config.operation_timeout_seconds == 2.5

    def test_overrides_win(self, test_env_vars):
        """Test keyword overrides take precedence over the environment"""
        config = ValidationSystemConfig.from_env(max_list_depth=7)

        assert config.max_list_depth == 7

    def test_empty_variables_are_ignored(self, monkeypatch):
        """Test empty values fall back to defaults"""
        monkeypatch.setenv("TASKGUARD_MAX_LIST_DEPTH", "")

        assert ValidationSystemConfig.from_env().max_list_depth == 5

    def test_invalid_boolean(self, monkeypatch):
        """Test unparseable booleans raise ConfigurationError"""
        monkeypatch.setenv("TASKGUARD_ENABLE_BUSINESS_RULES", "maybe")

        with pytest.raises(ConfigurationError, match="TASKGUARD_ENABLE_BUSINESS_RULES"):
            ValidationSystemConfig.from_env()

    def test_invalid_number(self, monkeypatch):
        """Test invalid values are wrapped in ConfigurationError"""
        monkeypatch.setenv("TASKGUARD_MAX_LIST_DEPTH", "deep")

        with pytest.raises(ConfigurationError, match="Invalid taskguard configuration"):
            ValidationSystemConfig.from_env()
