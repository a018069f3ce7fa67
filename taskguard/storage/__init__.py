"""
Data access collaborators for the validation core.
"""

from .base import DataAccess
from .memory import InMemoryDataAccess

__all__ = ["DataAccess", "InMemoryDataAccess"]
