"""
taskguard - business-rule and referential-integrity validation core for
task/list management backends.
"""

__version__ = "0.1.0"

from taskguard.config import ConfigurationError, ValidationSystemConfig
from taskguard.system import (
    ValidationSystem,
    cleanup_validation_system,
    get_validation_system,
    initialize_validation_system,
)

__all__ = [
    "ConfigurationError",
    "ValidationSystem",
    "ValidationSystemConfig",
    "cleanup_validation_system",
    "get_validation_system",
    "initialize_validation_system",
]
