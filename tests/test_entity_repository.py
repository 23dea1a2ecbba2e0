import asyncio
import logging

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query

from xmap.exceptions import KeyResolutionError
from xmap.repositories import EntityRepository
from xmap.repositories.keys import identity_of, resolve_identity

from sample_domain import Item, OrderLine


def test_list_all_is_lazy_until_iterated(seeded):
    repository = EntityRepository(seeded, Item)
    rows = repository.list_all()
    assert isinstance(rows, Query)
    assert sorted(item.name for item in rows) == ['Gadget', 'Gizmo', 'Widget']


def test_list_all_async_materialises(seeded):
    rows = asyncio.run(EntityRepository(seeded, Item).list_all_async())
    assert isinstance(rows, list)
    assert len(rows) == 3


def test_find_by_key_coerces_scalar_text(seeded):
    repository = EntityRepository(seeded, Item)
    widget = seeded.query(Item).filter_by(name='Widget').one()
    found = asyncio.run(repository.find_by_key(str(widget.id)))
    assert found is widget


def test_find_by_key_absent_row(seeded):
    assert asyncio.run(EntityRepository(seeded, Item).find_by_key(9999)) is None


def test_find_by_key_is_idempotent(seeded):
    repository = EntityRepository(seeded, Item)
    first = asyncio.run(repository.find_by_key(1))
    second = asyncio.run(repository.find_by_key(1))
    assert (first.id, first.name) == (second.id, second.name)


def test_find_by_key_rejects_uncoercible_key(seeded):
    with pytest.raises(KeyResolutionError):
        asyncio.run(EntityRepository(seeded, Item).find_by_key('abc'))


def test_add_then_find_round_trip(db_session):
    repository = EntityRepository(db_session, Item)
    added = asyncio.run(repository.add(Item(name='Sprocket', quantity=3)))
    repository.commit(added)
    assert added.id is not None

    found = asyncio.run(repository.find_by_key(added.id))
    assert (found.name, found.quantity, found.active) == ('Sprocket', 3, True)


def test_writes_are_staged_until_commit(db_session):
    repository = EntityRepository(db_session, Item)
    asyncio.run(repository.add(Item(name='Pending')))
    db_session.rollback()
    assert db_session.query(Item).count() == 0


def test_update_by_key(seeded):
    repository = EntityRepository(seeded, Item)
    widget = seeded.query(Item).filter_by(name='Widget').one()
    widget_id = widget.id
    seeded.expunge(widget)

    updated = asyncio.run(repository.update(Item(id=widget_id, name='Widget II', active=False, quantity=1)))
    repository.commit(updated)

    reloaded = seeded.get(Item, widget_id)
    assert (reloaded.name, reloaded.active, reloaded.quantity) == ('Widget II', False, 1)


def test_update_absent_row_returns_none(seeded):
    repository = EntityRepository(seeded, Item)
    assert asyncio.run(repository.update(Item(id=9999, name='Ghost'))) is None


def test_update_without_key_is_rejected(seeded):
    with pytest.raises(KeyResolutionError):
        asyncio.run(EntityRepository(seeded, Item).update(Item(name='No key')))


def test_remove_by_key(seeded):
    repository = EntityRepository(seeded, Item)
    gizmo_id = seeded.query(Item).filter_by(name='Gizmo').one().id

    removed = asyncio.run(repository.remove(Item(id=gizmo_id)))
    assert removed.name == 'Gizmo'
    repository.commit()

    assert asyncio.run(repository.find_by_key(gizmo_id)) is None


def test_remove_absent_row_returns_none(seeded):
    assert asyncio.run(EntityRepository(seeded, Item).remove(Item(id=9999))) is None


def test_composite_key_in_declared_order(seeded):
    repository = EntityRepository(seeded, OrderLine)
    line = asyncio.run(repository.find_by_key([1, 2]))
    assert line.sku == 'A-100'
    assert asyncio.run(repository.find_by_key(('3', '1'))).sku == 'B-200'


def test_swapped_composite_key_does_not_match(seeded):
    repository = EntityRepository(seeded, OrderLine)
    assert asyncio.run(repository.find_by_key([2, 1])) is None


def test_composite_key_arity_is_checked(seeded):
    repository = EntityRepository(seeded, OrderLine)
    with pytest.raises(KeyResolutionError):
        asyncio.run(repository.find_by_key(1))
    with pytest.raises(KeyResolutionError):
        asyncio.run(repository.find_by_key([1, 2, 3]))


def test_resolve_identity_and_identity_of():
    assert resolve_identity(OrderLine, ['4', '7']) == (4, 7)
    assert identity_of(OrderLine(order_id=4, line_no=7, sku='x')) == (4, 7)
    assert identity_of(OrderLine(order_id=4)) is None


def test_persistence_errors_are_logged_and_reraised_unchanged(seeded, caplog):
    widget_id = seeded.query(Item).filter_by(name='Widget').one().id
    seeded.expunge_all()

    with caplog.at_level(logging.ERROR):
        with pytest.raises(IntegrityError):
            asyncio.run(EntityRepository(seeded, Item).add(Item(id=widget_id, name='Copy')))
    seeded.rollback()

    failures = [r for r in caplog.records if getattr(r, 'operation', None) == 'add']
    assert len(failures) == 1
    assert failures[0].error_type == 'IntegrityError'
    assert failures[0].exc_info is not None
