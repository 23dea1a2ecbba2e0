"""
Mapping profile: which entity maps to which DTO, member by member.

A member source is either an attribute path on the entity ("name",
"category.name") or a callable computing the value from the entity.
DTO fields that are not listed map to the entity attribute with the same
name when there is one.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel
from sqlalchemy import inspect

from ..exceptions import MappingError

logger = logging.getLogger(__name__)

MemberSource = Union[str, Callable]


def _entity_attribute_keys(entity: Type) -> set:
    mapper = inspect(entity, raiseerr=False)
    if mapper is None:
        return {name for name in dir(entity) if not name.startswith('_')}
    return set(mapper.attrs.keys())


@dataclass
class TypeMap:
    entity: Type
    dto: Type[BaseModel]
    members: Dict[str, MemberSource] = field(default_factory=dict)

    def source_for(self, dto_field: str) -> Optional[MemberSource]:
        """Member source of a DTO field, or None when the field is unmapped."""
        if dto_field in self.members:
            return self.members[dto_field]
        if dto_field in _entity_attribute_keys(self.entity):
            return dto_field
        return None

    def source_path(self, dto_field: str) -> Optional[Tuple[str, ...]]:
        """Attribute path behind a DTO field; None for computed or unmapped fields."""
        source = self.source_for(dto_field)
        if isinstance(source, str):
            return tuple(source.split('.'))
        return None

    @property
    def name(self) -> str:
        return f"{self.entity.__name__} -> {self.dto.__name__}"


class MappingProfile:
    """Registry of entity/DTO maps, queried by pair or by DTO."""

    def __init__(self):
        self._maps: Dict[Tuple[Type, Type], TypeMap] = {}

    def create_map(self, entity: Type, dto: Type[BaseModel], **members: MemberSource) -> TypeMap:
        """
        Register (or replace) the map between an entity and a DTO.

        Args:
            entity: Mapped entity class
            dto: Pydantic model class
            **members: DTO field name -> attribute path or callable

        Returns:
            The registered TypeMap

        Raises:
            MappingError: if the DTO is not a pydantic model or a member is invalid
        """
        if not (isinstance(dto, type) and issubclass(dto, BaseModel)):
            raise MappingError(f"{dto!r} is not a pydantic model", entity=entity.__name__)

        for name, source in members.items():
            if name not in dto.model_fields:
                raise MappingError(
                    f"'{name}' is not a field of {dto.__name__}",
                    entity=entity.__name__, dto=dto.__name__
                )
            if not (isinstance(source, str) or callable(source)):
                raise MappingError(
                    f"Source of '{name}' must be an attribute path or a callable",
                    entity=entity.__name__, dto=dto.__name__
                )

        type_map = TypeMap(entity, dto, dict(members))
        if (entity, dto) in self._maps:
            logger.warning(f"Replacing existing map {type_map.name}")
        self._maps[(entity, dto)] = type_map
        return type_map

    def find_map(self, entity: Type, dto: Type) -> Optional[TypeMap]:
        return self._maps.get((entity, dto))

    def resolve_map(self, entity: Type, dto: Type) -> TypeMap:
        """Registered map for the pair, or a same-name default map."""
        return self._maps.get((entity, dto)) or TypeMap(entity, dto)

    def maps_for_dto(self, dto: Type) -> List[TypeMap]:
        return [m for (_, d), m in self._maps.items() if d is dto]

    def type_maps(self) -> List[TypeMap]:
        return list(self._maps.values())
