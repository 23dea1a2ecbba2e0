"""
Entity repository providing CRUD and filtered queries for one entity type.
"""

from typing import Any, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session

from ..dtos.query_envelope import QueryEnvelope
from ..exceptions import KeyResolutionError
from ..query.engine import DynamicQueryEngine
from ..query.vocabulary import EntityVocabulary
from ..utils.logging_utils import log_operation
from .keys import identity_of, resolve_identity

T = TypeVar('T')


class EntityRepository(Generic[T]):
    """
    Generic repository over a single entity type.

    Writes only stage changes (add + flush); call commit() to make them
    durable. Persistence failures are logged and re-raised unchanged.
    """

    def __init__(self, db: Session, model: Type[T], engine: Optional[DynamicQueryEngine] = None):
        """
        Initialize the repository.

        Args:
            db: SQLAlchemy database session (one per request)
            model: SQLAlchemy model class
            engine: Dynamic query engine used by query()
        """
        self.db = db
        self.model = model
        self.engine = engine or DynamicQueryEngine()

    @log_operation("list_all")
    def list_all(self) -> Query:
        """
        Lazily enumerable view over every row; nothing is read until it is iterated.
        """
        return self.db.query(self.model)

    @log_operation("list_all_async")
    async def list_all_async(self) -> List[T]:
        """
        Every row, fully materialised before returning.
        """
        return self.list_all().all()

    @log_operation("find_by_key")
    async def find_by_key(self, key: Any, options: Sequence = ()) -> Optional[T]:
        """
        Retrieve a record by its primary key.

        Args:
            key: Scalar key (coerced to the key column type) or ordered
                sequence of composite key components
            options: Loader options applied to the lookup

        Returns:
            Model instance or None if the type has no key or no row matches
        """
        identity = resolve_identity(self.model, key)
        if identity is None:
            return None
        options = list(options)
        return self.db.get(self.model, identity, options=options, populate_existing=bool(options))

    @log_operation("add")
    async def add(self, obj: T) -> T:
        """
        Stage a new record.

        Args:
            obj: Model instance to create

        Returns:
            The staged instance
        """
        self.db.add(obj)
        self.db.flush()
        return obj

    @log_operation("update")
    async def update(self, obj: T) -> Optional[T]:
        """
        Stage a full-row update by primary key.

        Args:
            obj: Model instance carrying the key and the new values

        Returns:
            The persistent instance, or None when no row has that key
        """
        if not inspect(obj).persistent:
            identity = identity_of(obj)
            if identity is None:
                raise KeyResolutionError(self.model.__name__, f"{self.model.__name__} update needs its full key")
            if self.db.get(self.model, identity) is None:
                return None
            obj = self.db.merge(obj)
        self.db.flush()
        return obj

    @log_operation("remove")
    async def remove(self, obj: T) -> Optional[T]:
        """
        Stage a delete by primary key.

        Args:
            obj: Model instance carrying (at least) the key

        Returns:
            The removed instance, or None when no row has that key
        """
        target = obj
        if not inspect(obj).persistent:
            identity = identity_of(obj)
            if identity is None:
                raise KeyResolutionError(self.model.__name__, f"{self.model.__name__} delete needs its full key")
            target = self.db.get(self.model, identity)
            if target is None:
                return None
        self.db.delete(target)
        self.db.flush()
        return target

    @log_operation("query")
    async def query(self, expression: Optional[str], parameters: Optional[Sequence[Any]] = None) -> Optional[List[T]]:
        """
        Rows matching a filter expression written in entity attribute names.

        Returns:
            Matching rows, or None for a blank expression
        """
        return self.engine.execute(
            self.db.query(self.model), expression, parameters, EntityVocabulary(self.model)
        )

    async def query_envelope(self, envelope: QueryEnvelope) -> QueryEnvelope:
        """Fill the envelope's result; the expression and parameters are echoed verbatim."""
        result = await self.query(envelope.qry, envelope.pars)
        return envelope.model_copy(update={"result": result})

    @log_operation("commit")
    def commit(self, *refresh: T) -> None:
        """
        Commit staged changes and reload the given instances so values
        generated by the database are visible.
        """
        self.db.commit()
        for obj in refresh:
            self.db.refresh(obj)
