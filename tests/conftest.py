from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from xmap.config.settings import Settings
from xmap.database import create_db_engine, create_session_factory
from xmap.main import create_app
from xmap.mapping.mapper import Mapper

from sample_domain import (
    Base,
    Category,
    Item,
    OrderLine,
    Product,
    build_profile,
    build_registry,
)


@pytest.fixture
def engine():
    """In-memory database shared by every session of one test"""
    engine = create_db_engine('sqlite://')
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def profile():
    return build_profile()


@pytest.fixture
def registry(profile):
    return build_registry(profile)


@pytest.fixture
def mapper(profile):
    return Mapper(profile)


@pytest.fixture
def settings():
    return Settings(database_url='sqlite://', stream_batch_size=2)


@pytest.fixture
def seeded(db_session):
    """A few rows of every sample entity, committed"""
    tools = Category(name='Tools')
    toys = Category(name='Toys')
    db_session.add_all([
        Item(name='Widget', active=True, quantity=5, restocked_at=datetime(2024, 3, 1, 9, 30)),
        Item(name='Gadget', active=False, quantity=None),
        Item(name='Gizmo', active=True, quantity=12, restocked_at=datetime(2024, 6, 15, 12, 0)),
        tools,
        toys,
        Product(name='Hammer', price=12.5, category=tools),
        Product(name='Wrench', price=8.0, category=tools),
        Product(name='Yo-yo', price=3.0, category=toys),
        OrderLine(order_id=1, line_no=2, sku='A-100'),
        OrderLine(order_id=3, line_no=1, sku='B-200'),
    ])
    db_session.commit()
    return db_session


@pytest.fixture
def app(engine, profile, registry, settings):
    return create_app(Base, profile, registry, settings=settings, engine=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client
