"""
Input validation utilities for the storage and configuration layers.

Guards the values that end up inside SQL statements or file paths: page
sizes, table/column identifiers and rule file locations. Also normalizes
the timestamps compared by date rules.
"""

import re
from datetime import datetime, timezone
from typing import Any


class InputValidationError(ValueError):
    """Raised when a low-level input (id, identifier, path) is unsafe."""
    pass


def validate_limit(limit: int, field_name: str = "limit", max_limit: int = 10000) -> int:
    """
    Validate a limit parameter for batched queries.

    Args:
        limit: The limit value to validate
        field_name: Name of the field (for error messages)
        max_limit: Maximum allowed limit value

    Returns:
        The validated limit value

    Raises:
        InputValidationError: If validation fails

    Examples:
        >>> validate_limit(100)
        100
        >>> validate_limit(0)  # doctest: +SKIP
        InputValidationError: limit must be a positive integer
    """
    if not isinstance(limit, int) or isinstance(limit, bool):
        raise InputValidationError(f"{field_name} must be an integer, got {type(limit).__name__}")

    if limit <= 0:
        raise InputValidationError(f"{field_name} must be a positive integer, got {limit}")

    if limit > max_limit:
        raise InputValidationError(f"{field_name} exceeds maximum of {max_limit}")

    return limit


def validate_offset(offset: int, field_name: str = "offset") -> int:
    """
    Validate an offset parameter for batched queries.

    Examples:
        >>> validate_offset(0)
        0
        >>> validate_offset(-5)  # doctest: +SKIP
        InputValidationError: offset must be a non-negative integer
    """
    if not isinstance(offset, int) or isinstance(offset, bool):
        raise InputValidationError(f"{field_name} must be an integer, got {type(offset).__name__}")

    if offset < 0:
        raise InputValidationError(f"{field_name} must be a non-negative integer, got {offset}")

    return offset


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Sanitize an SQL identifier (table name, column name, etc.).

    Use this for dynamic table/column names before composing them into a
    statement with ``psycopg.sql.Identifier``.

    Args:
        identifier: The identifier to sanitize
        field_name: Name of the field (for error messages)

    Returns:
        The validated identifier

    Raises:
        InputValidationError: If validation fails

    Examples:
        >>> sanitize_sql_identifier("item_dependencies")
        'item_dependencies'
        >>> sanitize_sql_identifier("items; DROP TABLE lists;")  # doctest: +SKIP
        InputValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise InputValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    if len(identifier) > 63:  # PostgreSQL limit
        raise InputValidationError(f"{field_name} exceeds PostgreSQL maximum length of 63 characters")

    reserved_keywords = {
        "select", "insert", "update", "delete", "drop", "create", "alter",
        "table", "database", "index", "view", "user", "grant", "revoke"
    }
    if identifier.lower() in reserved_keywords:
        raise InputValidationError(
            f"{field_name} '{identifier}' is a reserved SQL keyword. "
            "Please use a different name."
        )

    return identifier


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate a configuration file path.

    Rejects path traversal, null bytes and wildcards.

    Examples:
        >>> validate_file_path("/etc/taskguard/rules.yaml")
        '/etc/taskguard/rules.yaml'
        >>> validate_file_path("../../../etc/passwd")  # doctest: +SKIP
        InputValidationError: file_path contains path traversal characters
    """
    if not file_path or not isinstance(file_path, str):
        raise InputValidationError(f"{field_name} must be a non-empty string")

    file_path = file_path.strip()

    if not file_path:
        raise InputValidationError(f"{field_name} cannot be empty or whitespace-only")

    if ".." in file_path:
        raise InputValidationError(f"{field_name} contains path traversal characters (..)")

    if "\x00" in file_path:
        raise InputValidationError(f"{field_name} contains null bytes")

    if "*" in file_path or "?" in file_path:
        raise InputValidationError(f"{field_name} contains wildcards (* or ?)")

    if len(file_path) > 4096:  # Linux PATH_MAX
        raise InputValidationError(f"{field_name} exceeds maximum length of 4096 characters")

    return file_path


def coerce_datetime(value: Any) -> datetime | None:
    """
    Normalize a stored or submitted timestamp to an aware UTC datetime.

    Accepts datetimes (naive ones are taken as UTC) and ISO 8601 strings.
    Returns None for None or empty strings.

    Raises:
        InputValidationError: If a string cannot be parsed
    """
    if value is None or value == "":
        return None

    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise InputValidationError(f"Invalid ISO 8601 datetime: {value!r}") from e

    if not isinstance(value, datetime):
        raise InputValidationError(f"Expected a datetime, got {type(value).__name__}")

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
