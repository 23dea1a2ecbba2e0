"""
Specification Pattern Implementation

Compiled filter expressions are trees of specifications. Every node can
evaluate a candidate in memory (``is_satisfied_by``) and, when all the
fields it touches are plain columns, render itself as a SQLAlchemy filter
(``to_sql_filter``) so filtering happens in the database.

In-memory evaluation follows SQL three-valued logic: a comparison that
involves a null is unknown (``None``), ``and``/``or``/``not`` propagate
unknown, and a candidate matches only when the result is ``True``.
"""

import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Optional, Sequence, Tuple, TypeVar

from sqlalchemy import and_, false, not_, null, or_, true


T = TypeVar('T')

# Three-valued truth: True, False or None (unknown)
Truth = Optional[bool]

_OPERATORS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


@dataclass(frozen=True, eq=False)
class FieldRef:
    """
    A field bound to one vocabulary (entity attributes or DTO fields).

    ``relationships`` are the to-one hops in front of ``column``; a FieldRef
    without a column can only be evaluated in memory.
    """

    name: str
    python_type: Optional[type]
    getter: Callable[[Any], Any]
    column: Any = None
    relationships: Tuple[Any, ...] = field(default_factory=tuple)

    @property
    def can_push_down(self) -> bool:
        return self.column is not None

    def read(self, candidate: Any) -> Any:
        return self.getter(candidate)

    def wrap(self, clause):
        """Route a clause on the final column through the relationship hops."""
        for relationship in reversed(self.relationships):
            clause = relationship.has(clause)
        return clause


class Specification(ABC, Generic[T]):
    """
    Abstract base class for specifications.

    A specification encapsulates a single query criterion.
    """

    @abstractmethod
    def is_satisfied_by(self, candidate: T) -> Truth:
        """
        Check if a candidate object satisfies this specification.

        Args:
            candidate: Object to check

        Returns:
            True or False, or None when a null makes the outcome unknown
        """

    @abstractmethod
    def to_sql_filter(self):
        """
        Convert specification to SQLAlchemy filter expression.

        Returns:
            SQLAlchemy filter expression
        """

    @property
    def can_push_down(self) -> bool:
        """Whether to_sql_filter() can express this specification."""
        return True

    def __and__(self, other: "Specification[T]") -> "AndSpecification[T]":
        """Combine specifications with AND."""
        return AndSpecification(self, other)

    def __or__(self, other: "Specification[T]") -> "OrSpecification[T]":
        """Combine specifications with OR."""
        return OrSpecification(self, other)

    def __invert__(self) -> "NotSpecification[T]":
        """Negate specification with NOT."""
        return NotSpecification(self)


class AndSpecification(Specification[T]):
    """Specification that combines two specifications with AND."""

    def __init__(self, left: Specification[T], right: Specification[T]):
        self.left = left
        self.right = right

    def is_satisfied_by(self, candidate: T) -> Truth:
        left = self.left.is_satisfied_by(candidate)
        if left is False:
            return False
        right = self.right.is_satisfied_by(candidate)
        if right is False:
            return False
        return True if left and right else None

    def to_sql_filter(self):
        return and_(self.left.to_sql_filter(), self.right.to_sql_filter())

    @property
    def can_push_down(self) -> bool:
        return self.left.can_push_down and self.right.can_push_down


class OrSpecification(Specification[T]):
    """Specification that combines two specifications with OR."""

    def __init__(self, left: Specification[T], right: Specification[T]):
        self.left = left
        self.right = right

    def is_satisfied_by(self, candidate: T) -> Truth:
        left = self.left.is_satisfied_by(candidate)
        if left is True:
            return True
        right = self.right.is_satisfied_by(candidate)
        if right is True:
            return True
        return False if left is False and right is False else None

    def to_sql_filter(self):
        return or_(self.left.to_sql_filter(), self.right.to_sql_filter())

    @property
    def can_push_down(self) -> bool:
        return self.left.can_push_down and self.right.can_push_down


class NotSpecification(Specification[T]):
    """Specification that negates another specification."""

    def __init__(self, spec: Specification[T]):
        self.spec = spec

    def is_satisfied_by(self, candidate: T) -> Truth:
        result = self.spec.is_satisfied_by(candidate)
        return None if result is None else not result

    def to_sql_filter(self):
        return not_(self.spec.to_sql_filter())

    @property
    def can_push_down(self) -> bool:
        return self.spec.can_push_down


class ConstantSpecification(Specification[Any]):
    """Expression that folded to a constant while compiling."""

    def __init__(self, value: Truth):
        self.value = None if value is None else bool(value)

    def is_satisfied_by(self, candidate: Any) -> Truth:
        return self.value

    def to_sql_filter(self):
        if self.value is None:
            return null()
        return true() if self.value else false()


def compare_values(op: str, left: Any, right: Any, right_is_constant: bool = True) -> Truth:
    """
    Compare two values with SQL null semantics.

    Comparing against the null literal tests for presence; any other
    comparison involving a null value is unknown.
    """
    if left is None or right is None:
        if right_is_constant and right is None:
            if op == '==':
                return left is None
            if op == '!=':
                return left is not None
        return None
    try:
        return _OPERATORS[op](left, right)
    except TypeError:
        return False


class ComparisonSpecification(Specification[Any]):
    """``field <op> constant``"""

    def __init__(self, field_ref: FieldRef, op: str, value: Any):
        self.field = field_ref
        self.op = op
        self.value = value

    def is_satisfied_by(self, candidate: Any) -> Truth:
        return compare_values(self.op, self.field.read(candidate), self.value)

    def to_sql_filter(self):
        column = self.field.column
        if self.value is None and self.op == '==':
            clause = column.is_(None)
        elif self.value is None and self.op == '!=':
            clause = column.is_not(None)
        else:
            clause = _OPERATORS[self.op](column, self.value)
        return self.field.wrap(clause)

    @property
    def can_push_down(self) -> bool:
        return self.field.can_push_down


class FieldComparisonSpecification(Specification[Any]):
    """``field <op> field``"""

    def __init__(self, left: FieldRef, op: str, right: FieldRef):
        self.left = left
        self.op = op
        self.right = right

    def is_satisfied_by(self, candidate: Any) -> Truth:
        return compare_values(self.op, self.left.read(candidate), self.right.read(candidate), False)

    def to_sql_filter(self):
        return _OPERATORS[self.op](self.left.column, self.right.column)

    @property
    def can_push_down(self) -> bool:
        # Columns behind different relationship hops would need joins
        return (
            self.left.can_push_down and self.right.can_push_down
            and not self.left.relationships and not self.right.relationships
        )


class MembershipSpecification(Specification[Any]):
    """``field in (a, b, ...)``"""

    def __init__(self, field_ref: FieldRef, values: Sequence[Any]):
        self.field = field_ref
        self.values = tuple(values)

    def is_satisfied_by(self, candidate: Any) -> Truth:
        value = self.field.read(candidate)
        if value is None:
            return None
        if value in self.values:
            return True
        # x in (a, null) is unknown rather than false when x != a
        return None if any(v is None for v in self.values) else False

    def to_sql_filter(self):
        return self.field.wrap(self.field.column.in_(self.values))

    @property
    def can_push_down(self) -> bool:
        return self.field.can_push_down


class StringMatchSpecification(Specification[Any]):
    """``field.Contains(x)``, ``field.StartsWith(x)``, ``field.EndsWith(x)``"""

    METHODS = {
        'contains': ('contains', lambda value, text: text in value),
        'startswith': ('startswith', lambda value, text: value.startswith(text)),
        'endswith': ('endswith', lambda value, text: value.endswith(text)),
    }

    def __init__(self, field_ref: FieldRef, method: str, text: str):
        self.field = field_ref
        self.method = method.lower()
        self.text = text

    def is_satisfied_by(self, candidate: Any) -> Truth:
        value = self.field.read(candidate)
        if value is None or self.text is None:
            return None
        return self.METHODS[self.method][1](str(value), self.text)

    def to_sql_filter(self):
        sql_method = self.METHODS[self.method][0]
        clause = getattr(self.field.column, sql_method)(self.text, autoescape=True)
        return self.field.wrap(clause)

    @property
    def can_push_down(self) -> bool:
        return self.field.can_push_down
