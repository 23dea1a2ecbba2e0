"""
Tokenizer for filter expressions.
"""

from dataclasses import dataclass
from typing import Any, Iterator, List

from ..exceptions import QuerySyntaxError

KEYWORDS = {'and', 'or', 'not', 'true', 'false', 'null', 'in'}

# Longest operators first
OPERATORS = ('==', '!=', '<>', '<=', '>=', '&&', '||', '=', '<', '>', '!', '(', ')', ',', '.', '-')


@dataclass(frozen=True)
class Token:
    kind: str  # NUMBER, STRING, IDENT, KEYWORD, PARAM, OP, END
    value: Any
    position: int


def _read_string(expression: str, start: int) -> tuple:
    quote = expression[start]
    chars = []
    i = start + 1
    while i < len(expression):
        ch = expression[i]
        if ch == '\\' and i + 1 < len(expression):
            escaped = expression[i + 1]
            chars.append({'n': '\n', 't': '\t', 'r': '\r'}.get(escaped, escaped))
            i += 2
            continue
        if ch == quote:
            # Doubled quote inside a literal stands for the quote itself
            if i + 1 < len(expression) and expression[i + 1] == quote:
                chars.append(quote)
                i += 2
                continue
            return ''.join(chars), i + 1
        chars.append(ch)
        i += 1
    raise QuerySyntaxError("Unterminated string literal", expression, start)


def _read_number(expression: str, start: int) -> tuple:
    i = start
    seen_dot = False
    while i < len(expression) and (expression[i].isdigit() or (expression[i] == '.' and not seen_dot)):
        if expression[i] == '.':
            # "5.Foo" is not a number followed by a member
            if i + 1 >= len(expression) or not expression[i + 1].isdigit():
                break
            seen_dot = True
        i += 1
    text = expression[start:i]
    value = float(text) if seen_dot else int(text)
    return value, i


def tokenize(expression: str) -> List[Token]:
    return list(_iter_tokens(expression))


def _iter_tokens(expression: str) -> Iterator[Token]:
    i = 0
    length = len(expression)
    while i < length:
        ch = expression[i]
        if ch.isspace():
            i += 1
            continue
        if ch in ('"', "'"):
            value, end = _read_string(expression, i)
            yield Token('STRING', value, i)
            i = end
            continue
        if ch.isdigit():
            value, end = _read_number(expression, i)
            yield Token('NUMBER', value, i)
            i = end
            continue
        if ch == '@':
            end = i + 1
            while end < length and expression[end].isdigit():
                end += 1
            if end == i + 1:
                raise QuerySyntaxError("Expected parameter index after '@'", expression, i)
            yield Token('PARAM', int(expression[i + 1:end]), i)
            i = end
            continue
        if ch.isalpha() or ch == '_':
            end = i + 1
            while end < length and (expression[end].isalnum() or expression[end] == '_'):
                end += 1
            word = expression[i:end]
            if word.lower() in KEYWORDS:
                yield Token('KEYWORD', word.lower(), i)
            else:
                yield Token('IDENT', word, i)
            i = end
            continue
        for op in OPERATORS:
            if expression.startswith(op, i):
                yield Token('OP', op, i)
                i += len(op)
                break
        else:
            raise QuerySyntaxError(f"Unexpected character '{ch}'", expression, i)
    yield Token('END', None, length)
