from typing import Iterator, List, Type

from fastapi import Request
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


def _is_memory_sqlite(url: str) -> bool:
    return url in ('sqlite://', 'sqlite:///:memory:') or 'mode=memory' in url


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create the engine behind every request session.

    SQLite connections get WAL mode (file databases only), a busy timeout and
    foreign key enforcement. In-memory SQLite shares one connection so every
    session sees the same database.
    """
    if not url.startswith('sqlite'):
        return create_engine(url, echo=echo, pool_pre_ping=True)

    memory = _is_memory_sqlite(url)
    kwargs = {'connect_args': {'check_same_thread': False}, 'echo': echo}
    if memory:
        kwargs['poolclass'] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        if not memory:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")  # Wait up to 5s for locks instead of failing immediately
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine)


def get_db(request: Request) -> Iterator[Session]:
    """Dependency for FastAPI routes: one session per request, always closed"""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()


def iter_entity_types(base) -> List[Type]:
    """
    Every mapped class registered on a declarative base, sorted by name.

    Args:
        base: Declarative base (or anything exposing a ``registry``)

    Returns:
        List of mapped classes
    """
    classes = [mapper.class_ for mapper in base.registry.mappers]
    return sorted(classes, key=lambda cls: cls.__name__)


def primary_key_columns(model: Type) -> list:
    """Primary key columns of a mapped class, in declared order (read on every call)."""
    mapper = inspect(model, raiseerr=False)
    if mapper is None:
        return []
    return list(mapper.primary_key)
