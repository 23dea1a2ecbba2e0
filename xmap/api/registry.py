"""
Explicit opt-in of DTOs into endpoint generation.
"""

import logging
from typing import Dict, List, Optional, Tuple, Type

from pydantic import BaseModel

from ..dtos.marker import EndpointMarker
from ..mapping.profile import MappingProfile, TypeMap

logger = logging.getLogger(__name__)


class EndpointRegistry:
    """
    Which entity/DTO pairs get generated endpoints.

    Usage:
        registry = EndpointRegistry(profile)
        registry.register(Category, CategoryDto, include_children=True)
    """

    def __init__(self, profile: Optional[MappingProfile] = None):
        self.profile = profile or MappingProfile()
        self._entries: Dict[Type, Tuple[Type, EndpointMarker]] = {}

    def register(self, entity: Type, dto: Type[BaseModel], include_children: bool = False) -> EndpointMarker:
        """
        Expose a DTO. A same-name map is created when the profile has none.

        Args:
            entity: Entity the DTO is written back to
            dto: DTO class; its name becomes the route name
            include_children: Load to-many relations on single-record lookups

        Returns:
            The endpoint marker
        """
        if self.profile.find_map(entity, dto) is None:
            self.profile.create_map(entity, dto)
        if dto in self._entries:
            logger.warning(f"{dto.__name__} was already registered; replacing")
        marker = EndpointMarker(dto, include_children)
        self._entries[dto] = (entity, marker)
        return marker

    def marker_for(self, dto: Type) -> Optional[EndpointMarker]:
        entry = self._entries.get(dto)
        return entry[1] if entry else None

    def entity_for(self, dto: Type) -> Optional[Type]:
        entry = self._entries.get(dto)
        return entry[0] if entry else None

    def exposed_maps(self) -> List[Tuple[TypeMap, EndpointMarker]]:
        """Configured maps whose DTO carries a marker, in registration order of the maps."""
        exposed = []
        for type_map in self.profile.type_maps():
            marker = self.marker_for(type_map.dto)
            if marker is not None and self.entity_for(type_map.dto) is type_map.entity:
                exposed.append((type_map, marker))
        return exposed
