"""
Recursive-descent parser for filter expressions.

    expr       := or_expr
    or_expr    := and_expr (("||" | "or") and_expr)*
    and_expr   := unary (("&&" | "and") unary)*
    unary      := ("!" | "not") unary | comparison
    comparison := operand (cmp operand | "in" "(" operand ("," operand)* ")" | "in" param)?
    operand    := primary ("." ident ("(" [operand ("," operand)*] ")")?)*
    primary    := number | string | "true" | "false" | "null" | param | ident | "(" expr ")"
"""

from typing import List

from ..exceptions import QuerySyntaxError
from . import ast
from .tokenizer import Token, tokenize

COMPARISON_OPERATORS = {
    '==': '==',
    '=': '==',
    '!=': '!=',
    '<>': '!=',
    '<': '<',
    '<=': '<=',
    '>': '>',
    '>=': '>=',
}


class Parser:
    def __init__(self, expression: str):
        self.expression = expression
        self.tokens: List[Token] = tokenize(expression)
        self.index = 0

    @property
    def current(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _error(self, message: str, token: Token = None) -> QuerySyntaxError:
        token = token or self.current
        return QuerySyntaxError(f"{message} at position {token.position}", self.expression, token.position)

    def _match_op(self, *ops: str) -> bool:
        if self.current.kind == 'OP' and self.current.value in ops:
            self._advance()
            return True
        return False

    def _match_keyword(self, *words: str) -> bool:
        if self.current.kind == 'KEYWORD' and self.current.value in words:
            self._advance()
            return True
        return False

    def _expect_op(self, op: str) -> Token:
        if self.current.kind == 'OP' and self.current.value == op:
            return self._advance()
        raise self._error(f"Expected '{op}'")

    def parse(self):
        node = self._or()
        if self.current.kind != 'END':
            raise self._error(f"Unexpected '{self.current.value}'")
        return node

    def _or(self):
        node = self._and()
        while self._match_op('||') or self._match_keyword('or'):
            node = ast.Or(node, self._and())
        return node

    def _and(self):
        node = self._unary()
        while self._match_op('&&') or self._match_keyword('and'):
            node = ast.And(node, self._unary())
        return node

    def _unary(self):
        if self._match_op('!') or self._match_keyword('not'):
            return ast.Not(self._unary())
        return self._comparison()

    def _comparison(self):
        left = self._operand()
        token = self.current
        if token.kind == 'OP' and token.value in COMPARISON_OPERATORS:
            self._advance()
            return ast.Compare(COMPARISON_OPERATORS[token.value], left, self._operand())
        if self._match_keyword('in'):
            if self.current.kind == 'PARAM':
                param = self._advance()
                return ast.InParameter(left, ast.Parameter(param.value, param.position))
            self._expect_op('(')
            items = [self._operand()]
            while self._match_op(','):
                items.append(self._operand())
            self._expect_op(')')
            return ast.InList(left, tuple(items))
        return left

    def _operand(self):
        node = self._primary()
        while self.current.kind == 'OP' and self.current.value == '.':
            self._advance()
            name = self.current
            if name.kind != 'IDENT':
                raise self._error("Expected member name after '.'")
            self._advance()
            if self._match_op('('):
                args = []
                if not self._match_op(')'):
                    args.append(self._operand())
                    while self._match_op(','):
                        args.append(self._operand())
                    self._expect_op(')')
                node = ast.MethodCall(node, name.value, tuple(args), name.position)
            elif isinstance(node, ast.Member):
                node = ast.Member(node.path + (name.value,), node.position)
            else:
                raise self._error(f"Cannot access member '{name.value}' here", name)
        return node

    def _primary(self):
        token = self.current
        if token.kind == 'NUMBER':
            self._advance()
            return ast.Literal(token.value)
        if token.kind == 'STRING':
            self._advance()
            return ast.Literal(token.value)
        if token.kind == 'PARAM':
            self._advance()
            return ast.Parameter(token.value, token.position)
        if token.kind == 'IDENT':
            self._advance()
            return ast.Member((token.value,), token.position)
        if token.kind == 'KEYWORD' and token.value in ('true', 'false', 'null'):
            self._advance()
            return ast.Literal({'true': True, 'false': False, 'null': None}[token.value])
        if token.kind == 'OP' and token.value == '-':
            self._advance()
            number = self.current
            if number.kind != 'NUMBER':
                raise self._error("Expected number after '-'")
            self._advance()
            return ast.Literal(-number.value)
        if self._match_op('('):
            node = self._or()
            self._expect_op(')')
            return node
        if token.kind == 'END':
            raise self._error("Unexpected end of expression")
        raise self._error(f"Unexpected '{token.value}'")


def parse_expression(expression: str):
    """
    Parse a filter expression into a syntax tree.

    Raises:
        QuerySyntaxError: if the expression is malformed
    """
    return Parser(expression).parse()
