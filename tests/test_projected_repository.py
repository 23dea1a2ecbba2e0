import asyncio

from xmap.dtos import EndpointMarker, QueryEnvelope
from xmap.repositories import ProjectedRepository

from sample_domain import Category, CategoryDto, Item, ItemDto, Product, ProductDto


def category_id(db, name):
    return db.query(Category).filter_by(name=name).one().id


def test_list_all_async_projects_every_row(seeded, mapper):
    result = asyncio.run(ProjectedRepository(seeded, Product, ProductDto, mapper).list_all_async())
    by_name = {dto.name: dto for dto in result}
    assert set(by_name) == {'Hammer', 'Wrench', 'Yo-yo'}
    assert by_name['Yo-yo'].category_name == 'Toys'
    assert by_name['Hammer'].label == 'Hammer (12.5)'


def test_list_all_streams_dtos(seeded, mapper):
    stream = ProjectedRepository(seeded, Item, ItemDto, mapper).list_all(batch_size=1)
    assert not isinstance(stream, list)
    assert sorted(dto.name for dto in stream) == ['Gadget', 'Gizmo', 'Widget']


def test_find_by_key_loads_children_when_marker_asks(seeded, mapper):
    tools_id = category_id(seeded, 'Tools')
    seeded.expire_all()
    marker = EndpointMarker(CategoryDto, include_children=True)
    dto = asyncio.run(ProjectedRepository(seeded, Category, CategoryDto, mapper, marker).find_by_key(tools_id))
    assert sorted(p.name for p in dto.products) == ['Hammer', 'Wrench']


def test_find_by_key_leaves_children_unloaded_by_default(seeded, mapper):
    tools_id = category_id(seeded, 'Tools')
    seeded.expire_all()
    dto = asyncio.run(ProjectedRepository(seeded, Category, CategoryDto, mapper).find_by_key(tools_id))
    assert dto.name == 'Tools'
    assert dto.products == []


def test_list_never_expands_children(seeded, mapper):
    seeded.expire_all()
    marker = EndpointMarker(CategoryDto, include_children=True)
    result = asyncio.run(ProjectedRepository(seeded, Category, CategoryDto, mapper, marker).list_all_async())
    assert all(dto.products == [] for dto in result)


def test_add_returns_generated_key_and_matches_find(seeded, mapper):
    repository = ProjectedRepository(seeded, Item, ItemDto, mapper)
    added = asyncio.run(repository.add(ItemDto(name='Sprocket', quantity=7)))
    assert added.id is not None
    assert added.active is True

    found = asyncio.run(repository.find_by_key(added.id))
    assert found == added


def test_add_with_relation_answers_like_find(seeded, mapper):
    tools_id = category_id(seeded, 'Tools')
    repository = ProjectedRepository(seeded, Product, ProductDto, mapper)
    # category_id is not on the DTO; set it through the entity afterwards
    added = asyncio.run(repository.add(ProductDto(name='Saw', price=20.0)))
    product = seeded.get(Product, added.id)
    product.category_id = tools_id
    seeded.commit()

    found = asyncio.run(repository.find_by_key(added.id))
    assert found.category_name == 'Tools'
    assert found.label == 'Saw (20.0)'


def test_update_and_absent_update(seeded, mapper):
    repository = ProjectedRepository(seeded, Item, ItemDto, mapper)
    gadget_id = seeded.query(Item).filter_by(name='Gadget').one().id

    updated = asyncio.run(repository.update(ItemDto(id=gadget_id, name='Gadget Pro', active=True, quantity=2)))
    assert (updated.name, updated.active, updated.quantity) == ('Gadget Pro', True, 2)

    assert asyncio.run(repository.update(ItemDto(id=9999, name='Ghost'))) is None


def test_remove_returns_the_removed_record(seeded, mapper):
    repository = ProjectedRepository(seeded, Item, ItemDto, mapper)
    widget_id = seeded.query(Item).filter_by(name='Widget').one().id

    removed = asyncio.run(repository.remove(ItemDto(id=widget_id, name='ignored')))
    assert removed.name == 'Widget'
    assert asyncio.run(repository.find_by_key(widget_id)) is None
    assert asyncio.run(repository.remove(ItemDto(id=widget_id, name='ignored'))) is None


def test_query_envelope_echoes_expression_and_parameters(seeded, mapper):
    repository = ProjectedRepository(seeded, Item, ItemDto, mapper)
    envelope = QueryEnvelope(qry='Name == @0', pars=['Gizmo'])

    answered = asyncio.run(repository.query_envelope(envelope))
    assert answered.qry == 'Name == @0'
    assert answered.pars == ['Gizmo']
    assert [dto.name for dto in answered.result] == ['Gizmo']


def test_blank_query_envelope_leaves_result_empty(seeded, mapper):
    repository = ProjectedRepository(seeded, Item, ItemDto, mapper)
    answered = asyncio.run(repository.query_envelope(QueryEnvelope(qry='  ', pars=[])))
    assert answered.result is None
