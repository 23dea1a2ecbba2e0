"""
Route generation for every exposed type.

Two route sets share the same seven operations: one per registered DTO
(``bind_dto_endpoints``) and one per mapped entity (``bind_entity_endpoints``).
Handlers are built per type so request bodies are validated against the
concrete schema; the work itself is dispatched through the type's
operation table. Handlers are plain functions, so FastAPI runs them (and
the blocking session calls inside) in its threadpool.
"""

import logging
from typing import Any, Callable, List, Optional, Set

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..config.settings import Settings
from ..constants import HTTPStatus, Operation, RouteTemplates
from ..database import get_db, iter_entity_types, primary_key_columns
from ..dtos.query_envelope import QueryEnvelope
from ..exceptions import ConfigurationError
from ..mapping.mapper import Mapper
from ..mapping.profile import MappingProfile
from ..query.engine import DynamicQueryEngine
from ..utils.error_handlers import handle_api_errors
from ..utils.logging_utils import clear_logging_context, set_logging_context
from .auth import require_caller
from .operations import (
    OperationTable,
    build_entity_operations,
    build_projected_operations,
    invoke_sync,
)
from .registry import EndpointRegistry

logger = logging.getLogger(__name__)


def _query_string_key(request: Request) -> Optional[Any]:
    """Key components carried in the query string, in the order given."""
    values = [value for _, value in request.query_params.multi_items()]
    if not values:
        return None
    return values[0] if len(values) == 1 else values


def _not_found(table: OperationTable) -> HTTPException:
    return HTTPException(status_code=HTTPStatus.NOT_FOUND, detail=f"{table.name} not found")


class EndpointBinder:
    """
    Registers the generated routes on an application.

    Usage:
        binder = EndpointBinder(app, profile, registry, settings)
        binder.bind_dto_endpoints()
        binder.bind_entity_endpoints(Base)
    """

    def __init__(
        self,
        app: FastAPI,
        profile: MappingProfile,
        registry: EndpointRegistry,
        settings: Settings,
        auth_dependency: Optional[Callable] = None,
    ):
        self.app = app
        self.profile = profile
        self.registry = registry
        self.settings = settings
        self.mapper = Mapper(profile)
        self.engine = DynamicQueryEngine(settings.stream_batch_size)
        self.auth_dependency = auth_dependency or require_caller
        self._bound_names: Set[str] = set()

        # Evaluated once; routes cannot opt out afterwards
        if settings.require_auth and auth_dependency is None and not settings.api_tokens:
            raise ConfigurationError(
                "Authentication is required but no API tokens are configured",
                invalid_keys=["api_tokens"],
            )

    def _router(self) -> APIRouter:
        dependencies = [Depends(self.auth_dependency)] if self.settings.require_auth else []
        return APIRouter(dependencies=dependencies)

    def bind_dto_endpoints(self) -> List[OperationTable]:
        """Seven routes for every DTO opted in through the registry."""
        router = self._router()
        tables = []
        for type_map, marker in self.registry.exposed_maps():
            table = build_projected_operations(type_map.entity, marker, self.mapper, self.engine)
            if self._bind(router, table, tag="dto"):
                tables.append(table)
        self.app.include_router(router)
        logger.info(f"Bound DTO endpoints for {len(tables)} type(s): {', '.join(t.name for t in tables)}")
        return tables

    def bind_entity_endpoints(self, base) -> List[OperationTable]:
        """Seven routes for every mapped entity that has a primary key."""
        router = self._router()
        tables = []
        for model in iter_entity_types(base):
            if not primary_key_columns(model):
                logger.warning(f"Skipping {model.__name__}: no primary key")
                continue
            table = build_entity_operations(model, self.engine)
            if self._bind(router, table, tag="entity"):
                tables.append(table)
        self.app.include_router(router)
        logger.info(f"Bound entity endpoints for {len(tables)} type(s): {', '.join(t.name for t in tables)}")
        return tables

    def _bind(self, router: APIRouter, table: OperationTable, tag: str) -> bool:
        if table.name in self._bound_names:
            logger.warning(f"Route name {table.name} is already bound; skipping {table.entity.__name__}")
            return False
        self._bound_names.add(table.name)

        prefix = self.settings.route_prefix
        paths = {
            "list": RouteTemplates.LIST.format(prefix=prefix, name=table.name),
            "lazy": RouteTemplates.LIST_LAZY.format(lazy_prefix=self.settings.lazy_route_prefix, name=table.name),
            "find": RouteTemplates.FIND.format(prefix=prefix, name=table.name),
            "delete": RouteTemplates.DELETE.format(prefix=prefix, name=table.name),
            "query": RouteTemplates.QUERY.format(prefix=prefix, name=table.name),
        }
        schema = table.schema
        key_schema = table.key_schema
        batch_size = self.settings.stream_batch_size

        def enter(route: str, operation: Operation) -> None:
            clear_logging_context()
            set_logging_context(route=route, entity=table.entity.__name__, dto=table.name, operation=operation.value)

        @handle_api_errors(f"List {table.name}")
        def list_items(request: Request, db: Session = Depends(get_db)):
            key = _query_string_key(request)
            if key is None:
                enter(paths["list"], Operation.LIST)
                return invoke_sync(table, Operation.LIST, db)
            # Query-string values identify one row (composite keys)
            enter(paths["list"], Operation.FIND)
            item = invoke_sync(table, Operation.FIND, db, key)
            if item is None:
                raise _not_found(table)
            return item

        @handle_api_errors(f"Stream {table.name}")
        def list_lazy(request: Request):
            enter(paths["lazy"], Operation.LIST_LAZY)
            # The stream outlives the request scope, so it owns its session
            db = request.app.state.session_factory()
            try:
                items = invoke_sync(table, Operation.LIST_LAZY, db, batch_size)
            except Exception:
                db.close()
                raise

            def stream():
                try:
                    yield "["
                    for index, item in enumerate(items):
                        if index:
                            yield ","
                        yield item.model_dump_json(by_alias=True)
                    yield "]"
                finally:
                    db.close()

            return StreamingResponse(stream(), media_type="application/json")

        @handle_api_errors(f"Find {table.name}")
        def find(key: str, request: Request, db: Session = Depends(get_db)):
            enter(paths["find"], Operation.FIND)
            query_key = _query_string_key(request)
            item = invoke_sync(table, Operation.FIND, db, query_key if query_key is not None else key)
            if item is None:
                raise _not_found(table)
            return item

        @handle_api_errors(f"Create {table.name}")
        def create(payload: schema, db: Session = Depends(get_db)):
            enter(paths["list"], Operation.CREATE)
            return invoke_sync(table, Operation.CREATE, db, payload)

        @handle_api_errors(f"Update {table.name}")
        def update(payload: schema, db: Session = Depends(get_db)):
            enter(paths["list"], Operation.UPDATE)
            item = invoke_sync(table, Operation.UPDATE, db, payload)
            if item is None:
                raise _not_found(table)
            return item

        @handle_api_errors(f"Delete {table.name}")
        def delete(payload: key_schema, db: Session = Depends(get_db)):
            enter(paths["delete"], Operation.DELETE)
            removed = invoke_sync(table, Operation.DELETE, db, payload)
            if removed is None:
                raise _not_found(table)
            return Response(status_code=HTTPStatus.NO_CONTENT)

        @handle_api_errors(f"Query {table.name}")
        def query(envelope: QueryEnvelope, db: Session = Depends(get_db)):
            enter(paths["query"], Operation.QUERY)
            return invoke_sync(table, Operation.QUERY, db, envelope)

        tags = [tag]
        router.add_api_route(
            paths["list"], list_items, methods=["GET"], tags=tags,
            name=f"list_{table.name}", summary=f"List {table.name} (or find by query-string key)",
        )
        router.add_api_route(
            paths["lazy"], list_lazy, methods=["GET"], tags=tags,
            name=f"list_lazy_{table.name}", summary=f"Stream every {table.name}",
        )
        router.add_api_route(
            paths["find"], find, methods=["GET"], tags=tags, response_model=schema,
            name=f"find_{table.name}", summary=f"Find {table.name} by key",
        )
        router.add_api_route(
            paths["list"], create, methods=["POST"], tags=tags, response_model=schema,
            status_code=HTTPStatus.CREATED, name=f"create_{table.name}", summary=f"Create {table.name}",
        )
        router.add_api_route(
            paths["list"], update, methods=["PUT"], tags=tags, response_model=schema,
            name=f"update_{table.name}", summary=f"Update {table.name}",
        )
        router.add_api_route(
            paths["delete"], delete, methods=["POST"], tags=tags,
            status_code=HTTPStatus.NO_CONTENT, response_class=Response,
            name=f"delete_{table.name}", summary=f"Delete {table.name} by key",
        )
        router.add_api_route(
            paths["query"], query, methods=["POST"], tags=tags, response_model=QueryEnvelope[schema],
            name=f"query_{table.name}", summary=f"Filter {table.name} with an expression",
        )
        logger.debug(f"Bound {table.name} ({tag}) under {paths['list']}")
        return True
