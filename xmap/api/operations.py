"""
Operation tables for types known only at startup.

For every exposed entity or DTO a table of closures implementing the seven
operations is built once. The binder stays type-erased: it looks an
operation up by name and awaits (``invoke``) or runs to completion
(``invoke_sync``) whatever it returns.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, Optional, Type

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..constants import Operation
from ..dtos.marker import EndpointMarker
from ..dtos.query_envelope import QueryEnvelope
from ..exceptions import MappingError
from ..mapping.mapper import Mapper
from ..query.engine import DynamicQueryEngine
from ..repositories import EntityRepository, ProjectedRepository
from .schemas import entity_schema, partial_schema, to_full_dto


@dataclass
class OperationTable:
    """
    The operations bound for one route name.

    ``schema`` is the request/response shape (the DTO, or a schema generated
    from the entity's columns); ``key_schema`` is the body of the delete route.
    """

    name: str
    entity: Type
    schema: Type[BaseModel]
    key_schema: Type[BaseModel]
    dto: Optional[Type[BaseModel]] = None
    include_children: bool = False
    operations: Dict[Operation, Callable] = field(default_factory=dict)

    def operation(self, operation: Operation) -> Callable:
        try:
            return self.operations[operation]
        except KeyError:
            raise MappingError(f"{self.name} has no '{operation.value}' operation", entity=self.entity.__name__)


async def resolve(result: Any) -> Any:
    """Await awaitables; plain values pass through unchanged."""
    if inspect.isawaitable(result):
        return await result
    return result


async def invoke(table: OperationTable, operation: Operation, *args: Any) -> Any:
    return await resolve(table.operation(operation)(*args))


def invoke_sync(table: OperationTable, operation: Operation, *args: Any) -> Any:
    """
    Run an operation to completion on the calling thread.

    Route handlers call this from FastAPI's threadpool; a coroutine result
    gets an event loop of its own there, so database work never runs on
    the server loop.
    """
    result = table.operation(operation)(*args)
    if inspect.iscoroutine(result):
        return asyncio.run(result)
    return result


def build_entity_operations(model: Type, engine: DynamicQueryEngine) -> OperationTable:
    """Operations working directly on the persisted shape."""
    schema = entity_schema(model)

    def repository(db: Session) -> EntityRepository:
        return EntityRepository(db, model, engine)

    def serialize(entity):
        return schema.model_validate(entity)

    async def list_items(db: Session):
        return [serialize(e) for e in await repository(db).list_all_async()]

    def list_lazy(db: Session, batch_size: int) -> Iterator[BaseModel]:
        return (serialize(e) for e in repository(db).list_all().yield_per(batch_size))

    async def find(db: Session, key: Any):
        entity = await repository(db).find_by_key(key)
        return serialize(entity) if entity is not None else None

    async def create(db: Session, payload: BaseModel):
        repo = repository(db)
        entity = await repo.add(model(**payload.model_dump(exclude_unset=True)))
        repo.commit(entity)
        return serialize(entity)

    async def update(db: Session, payload: BaseModel):
        repo = repository(db)
        entity = await repo.update(model(**payload.model_dump()))
        if entity is None:
            return None
        repo.commit(entity)
        return serialize(entity)

    async def delete(db: Session, payload: BaseModel):
        repo = repository(db)
        entity = await repo.remove(model(**payload.model_dump(exclude_unset=True)))
        if entity is None:
            return None
        removed = serialize(entity)
        repo.commit()
        return removed

    async def query(db: Session, envelope: QueryEnvelope):
        result = await repository(db).query(envelope.qry, envelope.pars)
        return QueryEnvelope[schema](
            qry=envelope.qry,
            pars=envelope.pars,
            result=[serialize(e) for e in result] if result is not None else None,
        )

    return OperationTable(
        name=model.__name__,
        entity=model,
        schema=schema,
        key_schema=schema,
        operations={
            Operation.LIST: list_items,
            Operation.LIST_LAZY: list_lazy,
            Operation.FIND: find,
            Operation.CREATE: create,
            Operation.UPDATE: update,
            Operation.DELETE: delete,
            Operation.QUERY: query,
        },
    )


def build_projected_operations(
    model: Type,
    marker: EndpointMarker,
    mapper: Mapper,
    engine: DynamicQueryEngine,
) -> OperationTable:
    """Operations speaking the DTO named by the marker."""
    dto = marker.dto

    def repository(db: Session) -> ProjectedRepository:
        return ProjectedRepository(db, model, dto, mapper, marker, engine)

    async def list_items(db: Session):
        return await repository(db).list_all_async()

    def list_lazy(db: Session, batch_size: int) -> Iterator[BaseModel]:
        return repository(db).list_all(batch_size)

    async def find(db: Session, key: Any):
        return await repository(db).find_by_key(key)

    async def create(db: Session, payload: BaseModel):
        return await repository(db).add(payload)

    async def update(db: Session, payload: BaseModel):
        return await repository(db).update(payload)

    async def delete(db: Session, payload: BaseModel):
        return await repository(db).remove(to_full_dto(payload, dto))

    async def query(db: Session, envelope: QueryEnvelope):
        return await repository(db).query_envelope(envelope)

    return OperationTable(
        name=dto.__name__,
        entity=model,
        schema=dto,
        key_schema=partial_schema(dto),
        dto=dto,
        include_children=marker.include_children,
        operations={
            Operation.LIST: list_items,
            Operation.LIST_LAZY: list_lazy,
            Operation.FIND: find,
            Operation.CREATE: create,
            Operation.UPDATE: update,
            Operation.DELETE: delete,
            Operation.QUERY: query,
        },
    )
