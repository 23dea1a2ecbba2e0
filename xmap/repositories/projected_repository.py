"""
Projected repository: CRUD and filtered queries that speak a DTO.

Reads project entities onto the DTO before returning. Writes accept a DTO,
map it back onto the entity, mutate, commit, and map the persisted entity
back so values generated by the database reach the caller.
"""

from typing import Any, Generic, Iterator, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Query, Session

from ..constants import DEFAULT_STREAM_BATCH_SIZE
from ..dtos.marker import EndpointMarker
from ..dtos.query_envelope import QueryEnvelope
from ..mapping.mapper import Mapper
from ..query.engine import DynamicQueryEngine
from ..query.vocabulary import DtoVocabulary
from ..utils.logging_utils import log_operation
from .base_repository import EntityRepository
from .keys import identity_of
from .loading import relation_options

T = TypeVar('T')
P = TypeVar('P', bound=BaseModel)


class ProjectedRepository(Generic[T, P]):
    """Repository over entity type T, presented as DTO type P."""

    def __init__(
        self,
        db: Session,
        model: Type[T],
        dto: Type[P],
        mapper: Mapper,
        marker: Optional[EndpointMarker] = None,
        engine: Optional[DynamicQueryEngine] = None,
    ):
        self.db = db
        self.model = model
        self.dto = dto
        self.mapper = mapper
        self.include_children = marker.include_children if marker else False
        self.engine = engine or DynamicQueryEngine()
        self.entities = EntityRepository(db, model, self.engine)

    def _source(self) -> Query:
        # Bulk reads carry to-one relations only
        return self.db.query(self.model).options(*relation_options(self.model))

    def _project(self, entity: T) -> P:
        return self.mapper.to_dto(entity, self.dto)

    async def _reload(self, entity: T) -> P:
        # Re-read with the relations a lookup carries so writes answer like find_by_key
        identity = identity_of(entity)
        if identity is None:
            return self._project(entity)
        return await self.find_by_key(identity)

    @log_operation("list_all")
    def list_all(self, batch_size: int = DEFAULT_STREAM_BATCH_SIZE) -> Iterator[P]:
        """Lazy sequence of DTOs; rows are read in batches while it is consumed."""
        return (self._project(entity) for entity in self._source().yield_per(batch_size))

    @log_operation("list_all_async")
    async def list_all_async(self) -> List[P]:
        return self.mapper.to_dto_list(self._source().all(), self.dto)

    @log_operation("find_by_key")
    async def find_by_key(self, key: Any) -> Optional[P]:
        """
        Single DTO by primary key. To-many relations are populated only when
        the endpoint marker asks for children.
        """
        entity = await self.entities.find_by_key(
            key, options=relation_options(self.model, self.include_children)
        )
        if entity is None:
            return None
        return self._project(entity)

    @log_operation("add")
    async def add(self, dto: P) -> P:
        entity = self.mapper.to_entity(dto, self.model, partial=True)
        await self.entities.add(entity)
        self.entities.commit(entity)
        return await self._reload(entity)

    @log_operation("update")
    async def update(self, dto: P) -> Optional[P]:
        entity = await self.entities.update(self.mapper.to_entity(dto, self.model))
        if entity is None:
            return None
        self.entities.commit(entity)
        return await self._reload(entity)

    @log_operation("remove")
    async def remove(self, dto: P) -> Optional[P]:
        """
        Delete the row identified by the DTO's key fields.

        Returns:
            The removed record as it was before deletion, or None when absent
        """
        entity = await self.entities.remove(self.mapper.to_entity(dto, self.model, partial=True))
        if entity is None:
            return None
        removed = self._project(entity)
        self.entities.commit()
        return removed

    @log_operation("query")
    async def query(self, expression: Optional[str], parameters: Optional[Sequence[Any]] = None) -> Optional[List[P]]:
        """
        DTOs matching a filter expression written in DTO field names.

        Returns:
            Matching DTOs, or None for a blank expression
        """
        vocabulary = DtoVocabulary(self.mapper.profile, self.model, self.dto)
        return self.engine.execute(self._source(), expression, parameters, vocabulary, project=self._project)

    async def query_envelope(self, envelope: QueryEnvelope) -> QueryEnvelope:
        """Fill the envelope's result; the expression and parameters are echoed verbatim."""
        result = await self.query(envelope.qry, envelope.pars)
        return QueryEnvelope[self.dto](qry=envelope.qry, pars=envelope.pars, result=result)
