"""
Declarative entity <-> DTO mapping.
"""

from .profile import MappingProfile, TypeMap
from .mapper import Mapper

__all__ = ["MappingProfile", "TypeMap", "Mapper"]
