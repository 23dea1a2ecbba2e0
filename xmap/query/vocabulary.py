"""
Field vocabularies a filter expression can be written in.

EntityVocabulary resolves entity attribute names; DtoVocabulary resolves
DTO field names (or aliases) and translates them through the mapping
profile so the filter can still run in the database where possible.
"""

from typing import Any, Callable, Optional, Sequence, Tuple, Type

from pydantic import BaseModel
from sqlalchemy import inspect
from sqlalchemy.orm import ColumnProperty, RelationshipProperty

from ..exceptions import QuerySyntaxError
from ..mapping.profile import MappingProfile
from .specifications import FieldRef
from ..utils.coercion import column_python_type, scalar_type, unwrap_annotation


def _match_name(candidates: Sequence[str], name: str) -> Optional[str]:
    if name in candidates:
        return name
    lowered = name.lower()
    matches = [c for c in candidates if c.lower() == lowered]
    return matches[0] if len(matches) == 1 else None


def _chain_getter(keys: Tuple[str, ...]) -> Callable[[Any], Any]:
    def read(candidate):
        value = candidate
        for key in keys:
            if value is None:
                return None
            value = getattr(value, key)
        return value
    return read


class EntityVocabulary:
    """Entity attribute names; dotted paths walk to-one relationships."""

    def __init__(self, model: Type):
        self.model = model

    def resolve(self, path: Tuple[str, ...], expression: str = None, position: int = None) -> FieldRef:
        relationships, column_prop, keys = self._walk(path, expression, position)
        if column_prop is None:
            raise QuerySyntaxError(
                f"'{'.'.join(path)}' is a relation; compare one of its fields",
                expression, position
            )
        owner = column_prop.parent.class_
        return FieldRef(
            name='.'.join(keys),
            python_type=column_python_type(column_prop.columns[0]),
            getter=_chain_getter(keys),
            column=getattr(owner, column_prop.key),
            relationships=tuple(relationships),
        )

    def resolve_relation(self, path: Tuple[str, ...]) -> Optional[Tuple[Tuple[Any, ...], Type]]:
        """
        Resolve a path made only of to-one relationships.

        Returns:
            (relationship attributes, target class) or None
        """
        try:
            relationships, column_prop, _ = self._walk(path, None, None, allow_relation_end=True)
        except QuerySyntaxError:
            return None
        if column_prop is not None or not relationships:
            return None
        target = relationships[-1].property.mapper.class_
        return tuple(relationships), target

    def try_resolve(self, path: Tuple[str, ...]) -> Optional[FieldRef]:
        try:
            return self.resolve(path)
        except QuerySyntaxError:
            return None

    def _walk(self, path, expression, position, allow_relation_end=False):
        current = self.model
        relationships = []
        keys = []
        for i, name in enumerate(path):
            last = i == len(path) - 1
            mapper = inspect(current)
            key = _match_name(list(mapper.attrs.keys()), name)
            if key is None:
                raise QuerySyntaxError(
                    f"Unknown field '{name}' on {current.__name__}", expression, position
                )
            prop = mapper.attrs[key]
            keys.append(key)
            if isinstance(prop, RelationshipProperty):
                if prop.uselist:
                    raise QuerySyntaxError(
                        f"Cannot filter on collection '{key}' of {current.__name__}",
                        expression, position
                    )
                relationships.append(getattr(current, key))
                current = prop.mapper.class_
                if last and not allow_relation_end:
                    return relationships, None, tuple(keys)
            elif isinstance(prop, ColumnProperty):
                if not last:
                    raise QuerySyntaxError(
                        f"'{key}' on {current.__name__} has no members", expression, position
                    )
                return relationships, prop, tuple(keys)
            else:
                raise QuerySyntaxError(
                    f"Field '{key}' on {current.__name__} cannot be filtered", expression, position
                )
        return relationships, None, tuple(keys)


class DtoVocabulary:
    """DTO field names and aliases, translated through the mapping profile."""

    def __init__(self, profile: MappingProfile, model: Type, dto: Type[BaseModel]):
        self.profile = profile
        self.model = model
        self.dto = dto

    def resolve(self, path: Tuple[str, ...], expression: str = None, position: int = None) -> FieldRef:
        return self._resolve(self.dto, self.model, path, (), (), expression, position)

    def _find_field(self, dto: Type[BaseModel], name: str) -> Optional[str]:
        names = list(dto.model_fields.keys())
        found = _match_name(names, name)
        if found:
            return found
        aliases = {f.alias: n for n, f in dto.model_fields.items() if f.alias}
        alias = _match_name(list(aliases.keys()), name)
        return aliases[alias] if alias else None

    def _resolve(self, dto, model, path, relationships, keys, expression, position) -> FieldRef:
        field_name = self._find_field(dto, path[0])
        if field_name is None:
            raise QuerySyntaxError(f"Unknown field '{path[0]}' on {dto.__name__}", expression, position)

        annotation = dto.model_fields[field_name].annotation
        keys = keys + (field_name,)
        source = None
        if model is not None:
            source = self.profile.resolve_map(model, dto).source_path(field_name)
        entity_vocabulary = EntityVocabulary(model) if source else None

        if len(path) == 1:
            inner, is_collection = unwrap_annotation(annotation)
            if is_collection:
                raise QuerySyntaxError(
                    f"Cannot filter on collection '{field_name}' of {dto.__name__}", expression, position
                )
            column_ref = entity_vocabulary.try_resolve(source) if entity_vocabulary else None
            python_type = scalar_type(annotation)
            if column_ref is None or relationships is None:
                return FieldRef('.'.join(keys), python_type, _chain_getter(keys))
            return FieldRef(
                name='.'.join(keys),
                python_type=python_type,
                getter=_chain_getter(keys),
                column=column_ref.column,
                relationships=relationships + column_ref.relationships,
            )

        nested, is_collection = unwrap_annotation(annotation)
        if is_collection or not (isinstance(nested, type) and issubclass(nested, BaseModel)):
            raise QuerySyntaxError(
                f"'{field_name}' on {dto.__name__} has no members", expression, position
            )

        nested_model = None
        nested_relationships = None
        if entity_vocabulary is not None and relationships is not None:
            relation = entity_vocabulary.resolve_relation(source)
            if relation is not None:
                hops, nested_model = relation
                nested_relationships = relationships + hops
        return self._resolve(
            nested, nested_model, path[1:], nested_relationships, keys, expression, position
        )
