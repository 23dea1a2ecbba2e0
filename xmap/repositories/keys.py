"""
Primary key resolution.

Key shape is read from the mapper on every call; a scalar key is coerced to
the declared type of the single key column, a sequence maps positionally
onto the key columns.
"""

from typing import Any, List, Optional, Tuple, Type

from sqlalchemy import inspect

from ..database import primary_key_columns
from ..exceptions import KeyResolutionError
from ..utils.coercion import coerce_value, column_python_type


def primary_key_attributes(model: Type) -> List[Tuple[str, Any]]:
    """(attribute key, column) pairs of the primary key, in declared order."""
    mapper = inspect(model)
    return [(mapper.get_property_by_column(column).key, column) for column in primary_key_columns(model)]


def resolve_identity(model: Type, key: Any) -> Optional[Tuple[Any, ...]]:
    """
    Turn a loose key into an identity tuple for Session.get().

    Args:
        model: Entity class
        key: Scalar key or ordered sequence of key components

    Returns:
        Identity tuple, or None when the entity has no primary key

    Raises:
        KeyResolutionError: wrong number of components or uncoercible value
    """
    columns = primary_key_columns(model)
    if not columns:
        return None

    components = list(key) if isinstance(key, (list, tuple)) else [key]
    if len(components) != len(columns):
        raise KeyResolutionError(
            model.__name__,
            f"{model.__name__} has a {len(columns)}-part key, got {len(components)} value(s)"
        )

    identity = []
    for column, value in zip(columns, components):
        try:
            identity.append(coerce_value(value, column_python_type(column)))
        except ValueError as e:
            raise KeyResolutionError(model.__name__, f"Invalid key for {model.__name__}.{column.key}: {e}") from e
    return tuple(identity)


def identity_of(entity: Any) -> Optional[Tuple[Any, ...]]:
    """Identity tuple read from an instance's key attributes; None if any part is missing."""
    values = tuple(getattr(entity, key, None) for key, _ in primary_key_attributes(type(entity)))
    if not values or any(value is None for value in values):
        return None
    return values
