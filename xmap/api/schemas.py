"""
Pydantic schemas generated at startup for types known only at runtime.

Entities get a schema built from their column attributes so request bodies
can be validated and rows serialised; DTOs get a partial variant (every
field optional) used by the delete route, where only key fields are needed.
"""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, create_model
from sqlalchemy import inspect

from ..utils.coercion import column_python_type

_schema_cache: Dict[Type, Type[BaseModel]] = {}
_partial_cache: Dict[Type, Type[BaseModel]] = {}


def entity_schema(model: Type) -> Type[BaseModel]:
    """
    Schema mirroring an entity's columns, all optional so generated values
    (identity keys, server defaults) may be omitted on create.
    """
    if model in _schema_cache:
        return _schema_cache[model]

    fields: Dict[str, Any] = {}
    for prop in inspect(model).column_attrs:
        python_type = column_python_type(prop.columns[0]) or Any
        fields[prop.key] = (Optional[python_type], None)

    schema = create_model(
        f"{model.__name__}Schema",
        __config__=ConfigDict(from_attributes=True),
        **fields,
    )
    _schema_cache[model] = schema
    return schema


def partial_schema(dto: Type[BaseModel]) -> Type[BaseModel]:
    """Variant of a DTO where every field is optional; aliases are kept."""
    if dto in _partial_cache:
        return _partial_cache[dto]

    fields: Dict[str, Any] = {}
    for name, model_field in dto.model_fields.items():
        fields[name] = (Optional[model_field.annotation], Field(None, alias=model_field.alias))

    schema = create_model(
        f"{dto.__name__}Keys",
        __config__=ConfigDict(populate_by_name=True),
        **fields,
    )
    _partial_cache[dto] = schema
    return schema


def to_full_dto(partial: BaseModel, dto: Type[BaseModel]) -> BaseModel:
    """Carry the supplied fields of a partial instance over to the real DTO type, unvalidated."""
    supplied = partial.model_fields_set
    values = {name: getattr(partial, name) for name in supplied}
    return dto.model_construct(_fields_set=set(supplied), **values)
