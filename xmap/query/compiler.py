"""
Binds a parsed filter expression to a vocabulary and a parameter list,
producing a Specification tree.
"""

from typing import Any, List, Optional

from ..exceptions import QueryParameterError, QuerySyntaxError
from .specifications import (
    ComparisonSpecification,
    ConstantSpecification,
    FieldComparisonSpecification,
    FieldRef,
    MembershipSpecification,
    NotSpecification,
    Specification,
    StringMatchSpecification,
    compare_values,
)
from ..utils.coercion import coerce_value, infer_literal
from . import ast
from .parameters import NormalizedParameter

_FLIPPED = {'==': '==', '!=': '!=', '<': '>', '<=': '>=', '>': '<', '>=': '<='}
_STRING_METHODS = ('contains', 'startswith', 'endswith')


class _Value:
    """A constant operand: literal or parameter, with the text-ness of its origin."""

    def __init__(self, value: Any, from_parameter: bool, index: Optional[int] = None):
        self.value = value
        self.from_parameter = from_parameter
        self.index = index

    def typed(self, target: Optional[type], expression: str) -> Any:
        if target is None:
            return infer_literal(self.value) if self.from_parameter else self.value
        try:
            return coerce_value(self.value, target)
        except ValueError as e:
            if self.from_parameter:
                raise QueryParameterError(f"Parameter @{self.index}: {e}", self.index) from e
            raise QuerySyntaxError(str(e), expression) from e


class Compiler:
    def __init__(self, expression: str, vocabulary, parameters: List[NormalizedParameter]):
        self.expression = expression
        self.vocabulary = vocabulary
        self.parameters = parameters

    def compile(self, node) -> Specification:
        if isinstance(node, ast.And):
            return self.compile(node.left) & self.compile(node.right)
        if isinstance(node, ast.Or):
            return self.compile(node.left) | self.compile(node.right)
        if isinstance(node, ast.Not):
            return NotSpecification(self.compile(node.operand))
        if isinstance(node, ast.Compare):
            return self._compare(node)
        if isinstance(node, ast.InList):
            return self._membership(node.target, [self._operand(item) for item in node.items])
        if isinstance(node, ast.InParameter):
            values = self._parameter(node.parameter)
            if not isinstance(values.value, tuple):
                raise QueryParameterError(
                    f"Parameter @{node.parameter.index} must be a list to be used with 'in'",
                    node.parameter.index
                )
            items = [_Value(v, True, node.parameter.index) for v in values.value]
            return self._membership(node.target, items)
        if isinstance(node, ast.MethodCall):
            return self._method(node)
        if isinstance(node, ast.Member):
            # A bare boolean field is a predicate
            return ComparisonSpecification(self._field(node), '==', True)
        if isinstance(node, (ast.Literal, ast.Parameter)):
            value = self._operand(node)
            return ConstantSpecification(bool(value.typed(bool, self.expression)))
        raise QuerySyntaxError(f"Unsupported expression {node!r}", self.expression)

    def _field(self, node: ast.Member) -> FieldRef:
        return self.vocabulary.resolve(node.path, self.expression, node.position)

    def _parameter(self, node: ast.Parameter) -> _Value:
        if node.index >= len(self.parameters):
            raise QueryParameterError(
                f"Parameter @{node.index} referenced but only {len(self.parameters)} supplied",
                node.index
            )
        return _Value(self.parameters[node.index], True, node.index)

    def _operand(self, node):
        if isinstance(node, ast.Member):
            return self._field(node)
        if isinstance(node, ast.Literal):
            return _Value(node.value, False)
        if isinstance(node, ast.Parameter):
            value = self._parameter(node)
            if isinstance(value.value, tuple):
                raise QueryParameterError(
                    f"Parameter @{node.index} is a list; use it with 'in'", node.index
                )
            return value
        raise QuerySyntaxError("Expected a field, literal or parameter", self.expression)

    def _compare(self, node: ast.Compare) -> Specification:
        left = self._operand(node.left)
        right = self._operand(node.right)
        op = node.op

        if isinstance(left, FieldRef) and isinstance(right, FieldRef):
            return FieldComparisonSpecification(left, op, right)
        if not isinstance(left, FieldRef) and isinstance(right, FieldRef):
            left, right, op = right, left, _FLIPPED[op]
        if isinstance(left, FieldRef):
            return ComparisonSpecification(left, op, right.typed(left.python_type, self.expression))

        # Constant on both sides
        return ConstantSpecification(compare_values(
            op, left.typed(None, self.expression), right.typed(None, self.expression)
        ))

    def _membership(self, target_node, items) -> Specification:
        target = self._operand(target_node)
        if not isinstance(target, FieldRef):
            raise QuerySyntaxError("Left side of 'in' must be a field", self.expression)
        values = []
        for item in items:
            if isinstance(item, FieldRef):
                raise QuerySyntaxError("'in' list items must be literals or parameters", self.expression)
            values.append(item.typed(target.python_type, self.expression))
        return MembershipSpecification(target, values)

    def _method(self, node: ast.MethodCall) -> Specification:
        method = node.name.lower()
        if method not in _STRING_METHODS:
            raise QuerySyntaxError(
                f"Unknown method '{node.name}' at position {node.position}", self.expression, node.position
            )
        if not isinstance(node.target, ast.Member):
            raise QuerySyntaxError(f"'{node.name}' must be called on a field", self.expression, node.position)
        if len(node.args) != 1:
            raise QuerySyntaxError(f"'{node.name}' takes exactly one argument", self.expression, node.position)
        target = self._field(node.target)
        argument = self._operand(node.args[0])
        if isinstance(argument, FieldRef):
            raise QuerySyntaxError(f"'{node.name}' argument must be a literal or parameter", self.expression)
        text = argument.typed(str, self.expression)
        if text is None:
            raise QuerySyntaxError(f"'{node.name}' argument cannot be null", self.expression, node.position)
        return StringMatchSpecification(target, method, text)


def compile_expression(expression: str, tree, vocabulary, parameters: List[NormalizedParameter]) -> Specification:
    return Compiler(expression, vocabulary, parameters).compile(tree)
