"""
Maps entities to DTOs and back using a MappingProfile.

Reading an entity never triggers a lazy load: relations that are not loaded
(unexpanded collections, to-one relations left out of the query) are skipped
and the DTO default applies.
"""

from typing import Any, Iterable, List, Tuple, Type

from pydantic import BaseModel
from sqlalchemy import inspect

from ..utils.coercion import unwrap_annotation
from .profile import MappingProfile

_MISSING = object()


def _is_model_type(annotation) -> bool:
    return isinstance(annotation, type) and issubclass(annotation, BaseModel)


def _is_unloaded_relation(state, key: str) -> bool:
    # Expired columns refresh on access; relations would issue a lazy load
    mapper = getattr(state, "mapper", None)
    if mapper is None or key not in mapper.relationships:
        return False
    return key in state.unloaded


def read_loaded(obj: Any, path: Tuple[str, ...]) -> Any:
    """
    Follow an attribute path, stopping at attributes that are not loaded.

    Returns:
        The value, None if an intermediate hop is None, or _MISSING when an
        attribute along the path is not loaded
    """
    current = obj
    for segment in path:
        if current is None:
            return None
        state = inspect(current, raiseerr=False)
        if state is not None and _is_unloaded_relation(state, segment):
            return _MISSING
        current = getattr(current, segment)
    return current


def field_key(dto: Type[BaseModel], name: str) -> str:
    """Key under which a DTO accepts a field during validation."""
    alias = dto.model_fields[name].alias
    return alias or name


class Mapper:
    def __init__(self, profile: MappingProfile):
        self.profile = profile

    def to_dto(self, entity: Any, dto: Type[BaseModel]) -> BaseModel:
        """
        Project an entity onto a DTO.

        Args:
            entity: Entity instance
            dto: Target pydantic model class

        Returns:
            DTO instance
        """
        type_map = self.profile.resolve_map(type(entity), dto)
        data = {}
        for name, model_field in dto.model_fields.items():
            source = type_map.source_for(name)
            if source is None:
                continue
            if callable(source):
                value = source(entity)
            else:
                value = read_loaded(entity, tuple(source.split('.')))
                if value is _MISSING:
                    continue
            data[field_key(dto, name)] = self._convert(value, model_field.annotation)
        return dto.model_validate(data)

    def to_dto_list(self, entities: Iterable[Any], dto: Type[BaseModel]) -> List[BaseModel]:
        return [self.to_dto(entity, dto) for entity in entities]

    def _convert(self, value: Any, annotation) -> Any:
        inner, is_collection = unwrap_annotation(annotation)
        if value is None or not _is_model_type(inner):
            return value
        if is_collection:
            return [self._convert_one(item, inner) for item in value]
        return self._convert_one(value, inner)

    def _convert_one(self, value: Any, dto: Type[BaseModel]) -> Any:
        if isinstance(value, (BaseModel, dict)):
            return value
        return self.to_dto(value, dto)

    def to_entity(self, dto_instance: BaseModel, entity: Type, partial: bool = False) -> Any:
        """
        Reverse-map a DTO to a new (transient) entity instance.

        Only members that are plain column attributes of the entity are
        copied; computed members, dotted paths and relations are skipped.

        Args:
            dto_instance: Validated DTO
            entity: Entity class
            partial: Copy only fields the caller supplied explicitly

        Returns:
            Entity instance
        """
        dto = type(dto_instance)
        type_map = self.profile.resolve_map(entity, dto)
        column_keys = {prop.key for prop in inspect(entity).column_attrs}
        supplied = dto_instance.model_fields_set

        values = {}
        for name in dto.model_fields:
            source = type_map.source_for(name)
            if not isinstance(source, str) or source not in column_keys:
                continue
            if partial and name not in supplied:
                continue
            values[source] = getattr(dto_instance, name)
        return entity(**values)
