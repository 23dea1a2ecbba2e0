"""
Value coercion shared by key resolution and the dynamic query compiler.

Loose input (path segments, query-string values, normalised query
parameters) is converted to the Python type a column or DTO field declares.
"""

import enum
import types
import typing
import uuid
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Tuple

_TRUE = ('true', '1', 'yes')
_FALSE = ('false', '0', 'no')


def column_python_type(column) -> Optional[type]:
    """Python type declared by a SQLAlchemy column, or None when unknown."""
    try:
        return column.type.python_type
    except (NotImplementedError, AttributeError):
        return None


def unwrap_annotation(annotation) -> Tuple[Any, bool]:
    """
    Strip Optional/Union-with-None and list wrappers from a type annotation.

    Returns:
        (inner annotation, is_collection)
    """
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is getattr(types, 'UnionType', None):
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return unwrap_annotation(members[0])
        return annotation, False
    if origin in (list, set, tuple, frozenset, typing.List, typing.Sequence):
        args = typing.get_args(annotation)
        inner = args[0] if args else Any
        return unwrap_annotation(inner)[0], True
    return annotation, False


def scalar_type(annotation) -> Optional[type]:
    """Coercible scalar type behind an annotation, or None."""
    inner, is_collection = unwrap_annotation(annotation)
    if is_collection or not isinstance(inner, type):
        return None
    return inner


def infer_literal(text: Any) -> Any:
    """Best-effort typing of literal text when no declared type is available."""
    if not isinstance(text, str):
        return text
    lowered = text.strip().lower()
    if lowered == 'null':
        return None
    if lowered in ('true', 'false'):
        return lowered == 'true'
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"'{value}' is not a boolean")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"'{value}' is not an integer")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"'{value}' is not an integer")
        return int(value)
    if isinstance(value, int):
        return value
    return int(str(value).strip())


def _to_decimal(value: Any) -> Decimal:
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"'{value}' is not a decimal number")


def _to_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if 'T' in text or ' ' in text:
        return _to_datetime(text).date()
    return date.fromisoformat(text)


def _to_time(value: Any) -> time:
    if isinstance(value, time):
        return value
    return time.fromisoformat(str(value).strip())


def _to_enum(value: Any, target: type) -> enum.Enum:
    if isinstance(value, target):
        return value
    try:
        return target(value)
    except ValueError:
        try:
            return target[str(value)]
        except KeyError:
            raise ValueError(f"'{value}' is not a valid {target.__name__}")


def coerce_value(value: Any, target: Optional[type]) -> Any:
    """
    Convert ``value`` to ``target``.

    Args:
        value: Raw value (often text)
        target: Declared Python type, or None to return the value unchanged

    Returns:
        Converted value (None stays None)

    Raises:
        ValueError: if the value cannot represent the target type
    """
    if value is None or target is None:
        return value
    if isinstance(value, str) and value.strip().lower() == 'null' and target is not str:
        return None

    try:
        # bool before int: bool is an int subclass
        if target is bool:
            return _to_bool(value)
        if issubclass(target, enum.Enum):
            return _to_enum(value, target)
        if target is int:
            return _to_int(value)
        if target is float:
            return float(value)
        if target is Decimal:
            return _to_decimal(value)
        if target is datetime:
            return _to_datetime(value)
        if target is date:
            return _to_date(value)
        if target is time:
            return _to_time(value)
        if target is uuid.UUID:
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value).strip())
        if target is str:
            if isinstance(value, bool):
                return 'true' if value else 'false'
            return value if isinstance(value, str) else str(value)
        if isinstance(value, target):
            return value
        return target(value)
    except (TypeError, ValueError, OverflowError) as e:
        raise ValueError(f"Cannot convert '{value}' to {getattr(target, '__name__', target)}: {e}") from e
