import asyncio
from datetime import datetime

import pytest

from xmap.exceptions import QueryParameterError, QuerySyntaxError
from xmap.query import DtoVocabulary, DynamicQueryEngine, EntityVocabulary, normalize_parameters
from xmap.repositories import EntityRepository, ProjectedRepository

from sample_domain import Category, Item, ItemDto, Product, ProductDto


def names(rows):
    return sorted(row.name for row in rows)


def run_query(db, model, expression, parameters=None):
    return asyncio.run(EntityRepository(db, model).query(expression, parameters))


@pytest.mark.parametrize('expression', [None, '', '   '])
def test_blank_expression_means_no_query(seeded, expression):
    assert run_query(seeded, Item, expression, ['ignored']) is None


def test_string_parameter(seeded):
    assert names(run_query(seeded, Item, 'name == @0', ['Widget'])) == ['Widget']


def test_field_names_match_case_insensitively(seeded):
    assert names(run_query(seeded, Item, 'Name == @0', ['Gizmo'])) == ['Gizmo']


def test_numeric_parameter_is_coerced_to_column_type(seeded):
    assert names(run_query(seeded, Item, 'quantity == @0', [5])) == ['Widget']
    assert names(run_query(seeded, Item, 'quantity > @0', ['4'])) == ['Gizmo', 'Widget']


def test_constant_on_the_left_is_flipped(seeded):
    assert names(run_query(seeded, Item, '10 < quantity')) == ['Gizmo']


def test_bare_boolean_field_is_a_predicate(seeded):
    assert names(run_query(seeded, Item, 'active')) == ['Gizmo', 'Widget']
    assert names(run_query(seeded, Item, '!active')) == ['Gadget']


def test_null_comparison(seeded):
    assert names(run_query(seeded, Item, 'quantity == null')) == ['Gadget']
    assert names(run_query(seeded, Item, 'quantity != null')) == ['Gizmo', 'Widget']


def test_in_list_and_in_parameter(seeded):
    assert names(run_query(seeded, Item, 'name in ("Widget", "Gizmo")')) == ['Gizmo', 'Widget']
    assert names(run_query(seeded, Item, 'quantity in @0', [[5, 12]])) == ['Gizmo', 'Widget']


def test_string_methods(seeded):
    assert names(run_query(seeded, Item, 'name.Contains(@0)', ['dg'])) == ['Gadget', 'Widget']
    assert names(run_query(seeded, Item, 'name.StartsWith("Gi")')) == ['Gizmo']
    assert names(run_query(seeded, Item, 'name.EndsWith("et") && active')) == ['Widget']


def test_filter_through_to_one_relation(seeded):
    assert names(run_query(seeded, Product, 'category.name == @0', ['Tools'])) == ['Hammer', 'Wrench']


def test_object_parameter_is_rejected(seeded):
    with pytest.raises(QueryParameterError):
        run_query(seeded, Item, 'name == @0', [{'name': 'Widget'}])


def test_missing_parameter_is_rejected(seeded):
    with pytest.raises(QueryParameterError) as excinfo:
        run_query(seeded, Item, 'name == @1', ['Widget'])
    assert excinfo.value.index == 1


def test_list_parameter_outside_in_is_rejected(seeded):
    with pytest.raises(QueryParameterError):
        run_query(seeded, Item, 'name == @0', [['Widget']])


def test_uncoercible_parameter_is_rejected(seeded):
    with pytest.raises(QueryParameterError):
        run_query(seeded, Item, 'quantity == @0', ['many'])


def test_unknown_field_is_a_syntax_error(seeded):
    with pytest.raises(QuerySyntaxError):
        run_query(seeded, Item, 'colour == "red"')


def test_collection_fields_cannot_be_filtered():
    engine = DynamicQueryEngine()
    with pytest.raises(QuerySyntaxError):
        engine.compile('products == 1', [], EntityVocabulary(Category))


def test_column_filters_push_down_and_computed_fields_do_not(profile):
    engine = DynamicQueryEngine()
    vocabulary = DtoVocabulary(profile, Product, ProductDto)
    assert engine.compile('category_name == "Tools"', [], vocabulary).can_push_down
    assert not engine.compile('label.Contains("x")', [], vocabulary).can_push_down


def test_dto_query_uses_dto_names_and_aliases(seeded, mapper):
    repository = ProjectedRepository(seeded, Item, ItemDto, mapper)
    result = asyncio.run(repository.query('Quantity >= @0 && Active', [5]))
    assert sorted(dto.name for dto in result) == ['Gizmo', 'Widget']
    assert all(isinstance(dto, ItemDto) for dto in result)


def test_dto_query_on_computed_field_filters_in_memory(seeded, mapper):
    repository = ProjectedRepository(seeded, Product, ProductDto, mapper, engine=DynamicQueryEngine(batch_size=1))
    result = asyncio.run(repository.query('label.Contains(@0)', ['12.5']))
    assert [dto.name for dto in result] == ['Hammer']
    assert result[0].category_name == 'Tools'


def test_normalize_parameters():
    assert normalize_parameters(['abc', 5, 2.5, True, None, [1, 'x']]) == [
        'abc', '5', '2.5', 'true', None, ('1', 'x'),
    ]
    # String content is kept verbatim, embedded quotes included
    assert normalize_parameters(['say "hi"']) == ['say "hi"']
    assert normalize_parameters(None) == []


@pytest.mark.parametrize('parameter, expected', [
    (True, ['Gizmo', 'Widget']),
    ('false', ['Gadget']),
    ('TRUE', ['Gizmo', 'Widget']),
])
def test_boolean_parameter_compares_by_value(seeded, parameter, expected):
    assert names(run_query(seeded, Item, 'active == @0', [parameter])) == expected


@pytest.mark.parametrize('expression, parameter, expected', [
    ('restocked_at < @0', '2024-05-01T00:00:00', ['Widget']),
    ('restocked_at >= @0', '2024-06-15', ['Gizmo']),
    ('restocked_at == @0', datetime(2024, 3, 1, 9, 30), ['Widget']),
])
def test_datetime_parameter_matches_in_database_and_in_memory(seeded, expression, parameter, expected):
    spec = DynamicQueryEngine().compile(expression, [parameter], EntityVocabulary(Item))
    in_memory = [item for item in seeded.query(Item) if spec.is_satisfied_by(item) is True]

    assert names(run_query(seeded, Item, expression, [parameter])) == expected
    assert names(in_memory) == expected


def test_null_rows_filter_the_same_in_database_and_in_memory(seeded, mapper):
    seeded.add(Product(name='Nail', price=None))
    seeded.commit()
    repository = ProjectedRepository(seeded, Product, ProductDto, mapper)

    # label.Contains("") is always true but forces in-memory filtering
    in_database = asyncio.run(repository.query('!(price == @0)', [8]))
    in_memory = asyncio.run(repository.query('!(price == @0) && label.Contains("")', [8]))
    assert names(in_database) == names(in_memory) == ['Hammer', 'Yo-yo']

    in_database = asyncio.run(repository.query('price > @0 || name == "Nail"', [5]))
    in_memory = asyncio.run(repository.query('price > @0 || label.StartsWith("Nail")', [5]))
    assert names(in_database) == names(in_memory) == ['Hammer', 'Nail', 'Wrench']

    in_database = asyncio.run(repository.query('!(price in (8, 3))'))
    in_memory = asyncio.run(repository.query('!(price in (8, 3)) && label.Contains("")'))
    assert names(in_database) == names(in_memory) == ['Hammer']


def test_null_comparisons_are_unknown_in_memory():
    engine = DynamicQueryEngine()
    vocabulary = EntityVocabulary(Item)
    gadget = Item(name='Gadget', quantity=None)

    assert engine.compile('quantity > 1', [], vocabulary).is_satisfied_by(gadget) is None
    assert engine.compile('!(quantity > 1)', [], vocabulary).is_satisfied_by(gadget) is None
    assert engine.compile('quantity > 1 && name == "Other"', [], vocabulary).is_satisfied_by(gadget) is False
    assert engine.compile('quantity > 1 || name == "Gadget"', [], vocabulary).is_satisfied_by(gadget) is True
    assert engine.compile('quantity == null', [], vocabulary).is_satisfied_by(gadget) is True
