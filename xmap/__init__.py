"""
xmap: CRUD and filtered-query endpoints generated at startup from
SQLAlchemy entities and their pydantic DTOs.
"""

from .api import EndpointBinder, EndpointRegistry
from .config import Settings
from .mapping import Mapper, MappingProfile
from .repositories import EntityRepository, ProjectedRepository

__version__ = "0.1.0"

__all__ = [
    "EndpointBinder",
    "EndpointRegistry",
    "EntityRepository",
    "Mapper",
    "MappingProfile",
    "ProjectedRepository",
    "Settings",
]
