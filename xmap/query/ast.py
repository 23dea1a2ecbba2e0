"""
Syntax tree produced by the expression parser.
"""

from dataclasses import dataclass
from typing import Any, Tuple


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Parameter:
    index: int
    position: int


@dataclass(frozen=True)
class Member:
    path: Tuple[str, ...]
    position: int


@dataclass(frozen=True)
class MethodCall:
    target: Any
    name: str
    args: Tuple[Any, ...]
    position: int


@dataclass(frozen=True)
class Compare:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class InList:
    target: Any
    items: Tuple[Any, ...]


@dataclass(frozen=True)
class InParameter:
    target: Any
    parameter: Parameter


@dataclass(frozen=True)
class Not:
    operand: Any


@dataclass(frozen=True)
class And:
    left: Any
    right: Any


@dataclass(frozen=True)
class Or:
    left: Any
    right: Any
