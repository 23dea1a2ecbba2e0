"""
Repository layer for data access abstraction.

EntityRepository works on persisted entities; ProjectedRepository wraps it
and speaks a DTO for reads and writes.
"""

from .base_repository import EntityRepository
from .projected_repository import ProjectedRepository

__all__ = [
    "EntityRepository",
    "ProjectedRepository",
]
