"""
Referential integrity: foreign-key registry, cycle detection and the
system-wide integrity monitor.
"""

from .foreign_keys import SYSTEM_CONSTRAINTS, ForeignKeyManager
from .graph import find_cycles, nodes_in_cycles
from .monitor import IntegrityMonitor

__all__ = [
    "ForeignKeyManager",
    "IntegrityMonitor",
    "SYSTEM_CONSTRAINTS",
    "find_cycles",
    "nodes_in_cycles",
]
