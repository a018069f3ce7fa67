"""
Pytest configuration and fixtures for taskguard tests

This module provides shared fixtures for unit and integration tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest

from taskguard.config import ValidationSystemConfig
from taskguard.core.rules import BusinessRuleEngine
from taskguard.storage.memory import InMemoryDataAccess


# =======================
# PYTEST CONFIGURATION
# =======================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that require Docker containers"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# STORE FIXTURES
# =======================

@pytest.fixture
def store() -> InMemoryDataAccess:
    """
    Empty in-memory store

    Returns:
        InMemoryDataAccess with no rows
    """
    return InMemoryDataAccess()


@pytest.fixture
def seeded_store() -> InMemoryDataAccess:
    """
    Store with a small, consistent task tree

    Lists: L1 (active, root) > L2 (active) > L3 (active); L4 archived root; L5 deleted root.
    Items: I1 completed, I2 in_progress, I3 pending (depends on I1, I2) in L1.
    Agents: A1.

    Returns:
        InMemoryDataAccess seeded with the tree
    """
    created = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return InMemoryDataAccess(
        {
            "lists": [
                {"id": "L1", "title": "Inbox", "parent_list_id": None, "status": "active", "created_at": created},
                {"id": "L2", "title": "Work", "parent_list_id": "L1", "status": "active", "created_at": created},
                {"id": "L3", "title": "Sprint", "parent_list_id": "L2", "status": "active", "created_at": created},
                {"id": "L4", "title": "Old", "parent_list_id": None, "status": "archived", "created_at": created},
                {"id": "L5", "title": "Trash", "parent_list_id": None, "status": "deleted", "created_at": created},
            ],
            "items": [
                {
                    "id": "I1",
                    "list_id": "L1",
                    "title": "Design",
                    "status": "completed",
                    "dependencies": [],
                    "created_at": created,
                    "completed_at": created + timedelta(days=2),
                },
                {
                    "id": "I2",
                    "list_id": "L1",
                    "title": "Build",
                    "status": "in_progress",
                    "dependencies": [],
                    "assigned_to": "A1",
                    "created_at": created,
                },
                {
                    "id": "I3",
                    "list_id": "L1",
                    "title": "Ship",
                    "status": "pending",
                    "dependencies": ["I1", "I2"],
                    "created_at": created,
                },
            ],
            "agents": [
                {"id": "A1", "name": "planner", "role": "planner", "permissions": ["read", "plan"]},
            ],
        }
    )


@pytest.fixture
def rule_engine() -> BusinessRuleEngine:
    """Rule engine with no rules registered"""
    return BusinessRuleEngine()


@pytest.fixture
def system_config() -> ValidationSystemConfig:
    """Default configuration with a short timeout for tests"""
    return ValidationSystemConfig(operation_timeout_seconds=5.0)


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================

@pytest.fixture(scope="session")
def postgres_container():
    """
    Start PostgreSQL container for integration tests

    Yields:
        PostgresContainer instance with the task schema loaded
    """
    import psycopg
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer(
        image="postgres:16.2-alpine",
        username="test_taskguard",
        password="test_password",
        dbname="test_taskguard",
        driver=None,
    ) as postgres:
        schema_path = os.path.join(os.path.dirname(__file__), "fixtures", "schema.sql")
        with open(schema_path) as f:
            schema_sql = f.read()

        with psycopg.connect(postgres.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(schema_sql)
            conn.commit()

        yield postgres


@pytest.fixture
def db_settings(postgres_container) -> dict:
    """Keyword arguments for AsyncDatabaseConnectionPool pointing at the container"""
    return {
        "host": postgres_container.get_container_host_ip(),
        "port": int(postgres_container.get_exposed_port(5432)),
        "database": "test_taskguard",
        "user": "test_taskguard",
        "password": "test_password",
    }


@pytest.fixture
def clean_db(postgres_container) -> Generator[None, None, None]:
    """
    Truncate every task table before the test

    Args:
        postgres_container: PostgreSQL container fixture
    """
    import psycopg

    with psycopg.connect(postgres_container.get_connection_url()) as conn:
        with conn.cursor() as cur:
            cur.execute("TRUNCATE TABLE item_dependencies, sessions, items, lists, agents CASCADE")
        conn.commit()

    yield



# =======================
# CONFIGURATION FIXTURES
# =======================

@pytest.fixture
def test_env_vars(monkeypatch) -> dict:
    """
    Set test environment variables

    Loads tests/fixtures/test.env into the environment for one test.

    Returns:
        The loaded variables
    """
    from dotenv import dotenv_values

    env_path = os.path.join(os.path.dirname(__file__), "fixtures", "test.env")
    values = dotenv_values(env_path)
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    return values
