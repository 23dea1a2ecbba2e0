import pytest

from xmap.exceptions import QuerySyntaxError
from xmap.query import ast
from xmap.query.parser import parse_expression
from xmap.query.tokenizer import tokenize


def test_tokenize_operators_and_parameters():
    kinds = [(t.kind, t.value) for t in tokenize('Name == @0 && Price >= 2.5')]
    assert kinds == [
        ('IDENT', 'Name'),
        ('OP', '=='),
        ('PARAM', 0),
        ('OP', '&&'),
        ('IDENT', 'Price'),
        ('OP', '>='),
        ('NUMBER', 2.5),
        ('END', None),
    ]


def test_keywords_are_case_insensitive():
    tree = parse_expression('Active AND NOT Deleted')
    assert tree == ast.And(
        ast.Member(('Active',), 0),
        ast.Not(ast.Member(('Deleted',), 15)),
    )


def test_single_equals_and_angle_brackets_are_aliases():
    assert parse_expression('Id = 1').op == '=='
    assert parse_expression('Id <> 1').op == '!='


def test_or_binds_looser_than_and():
    tree = parse_expression('a == 1 || b == 2 && c == 3')
    assert isinstance(tree, ast.Or)
    assert isinstance(tree.right, ast.And)


def test_parentheses_override_precedence():
    tree = parse_expression('(a == 1 || b == 2) && c == 3')
    assert isinstance(tree, ast.And)
    assert isinstance(tree.left, ast.Or)


def test_dotted_member_and_method_call():
    tree = parse_expression('Category.Name.StartsWith("To")')
    assert isinstance(tree, ast.MethodCall)
    assert tree.name == 'StartsWith'
    assert tree.target.path == ('Category', 'Name')
    assert tree.args == (ast.Literal('To'),)


def test_in_list_and_in_parameter():
    in_list = parse_expression('Id in (1, 2, 3)')
    assert in_list.items == (ast.Literal(1), ast.Literal(2), ast.Literal(3))

    in_param = parse_expression('Id in @1')
    assert isinstance(in_param, ast.InParameter)
    assert in_param.parameter.index == 1


def test_string_literals_with_either_quote_and_escapes():
    assert parse_expression("Name == 'it''s'").right == ast.Literal("it's")
    assert parse_expression('Name == "say \\"hi\\""').right == ast.Literal('say "hi"')


def test_negative_numbers_and_null():
    assert parse_expression('Price > -3').right == ast.Literal(-3)
    assert parse_expression('Quantity == null').right == ast.Literal(None)


@pytest.mark.parametrize('expression', [
    'Name ==',
    'Name == "open',
    '(Name == 1',
    'Name == 1 )',
    'Name # 1',
    '@',
    'Id in (1, 2',
])
def test_malformed_expressions_raise_syntax_error(expression):
    with pytest.raises(QuerySyntaxError):
        parse_expression(expression)


def test_syntax_error_reports_position():
    with pytest.raises(QuerySyntaxError) as excinfo:
        parse_expression('Name == 1 )')
    assert excinfo.value.position == 10
