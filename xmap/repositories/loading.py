"""
Relation loading options.

To-one relations are always eager loaded; to-many relations only when a
single row is materialised for an exposed type whose marker asks for its
children.
"""

from typing import List, Type

from sqlalchemy import inspect
from sqlalchemy.orm import joinedload, selectinload


def relation_options(model: Type, include_children: bool = False) -> List:
    options = []
    for relationship in inspect(model).relationships:
        attribute = getattr(model, relationship.key)
        if not relationship.uselist:
            options.append(joinedload(attribute))
        elif include_children:
            options.append(selectinload(attribute))
    return options
