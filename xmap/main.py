from contextlib import asynccontextmanager
import logging
import socket
from typing import Callable, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine

from .api.binder import EndpointBinder
from .api.registry import EndpointRegistry
from .config.settings import Settings
from .constants import ServerConfig
from .database import create_db_engine, create_session_factory
from .exceptions import ConfigurationError
from .mapping.profile import MappingProfile
from .utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)


def create_app(
    base,
    profile: Optional[MappingProfile] = None,
    registry: Optional[EndpointRegistry] = None,
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    expose_entities: bool = True,
    create_tables: bool = False,
    auth_dependency: Optional[Callable] = None,
) -> FastAPI:
    """
    Build the application with both generated route sets.

    Args:
        base: Declarative base whose mapped classes are exposed
        profile: Entity/DTO mapping profile (defaults to the registry's)
        registry: DTOs opted into endpoint generation
        settings: Deployment settings (read from the environment when omitted)
        engine: Engine to use instead of one built from settings.database_url
        expose_entities: Also bind the entity-driven route set
        create_tables: Run ``base.metadata.create_all`` on startup
        auth_dependency: Replacement for the bearer-token check

    Returns:
        FastAPI application
    """
    settings = settings or Settings.from_env()
    configure_logging(settings)

    registry = registry or EndpointRegistry(profile)
    profile = profile or registry.profile
    engine = engine or create_db_engine(settings.database_url)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan - startup and shutdown"""
        logger.info("xmap API starting")
        yield
        logger.info("xmap API shutting down")
        engine.dispose()

    app = FastAPI(
        title="xmap API",
        description="CRUD and filtered-query endpoints generated from entities and DTOs",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    if create_tables:
        base.metadata.create_all(bind=engine)

    binder = EndpointBinder(app, profile, registry, settings, auth_dependency=auth_dependency)
    binder.bind_dto_endpoints()
    if expose_entities:
        binder.bind_entity_endpoints(base)

    @app.get("/health")
    def health_check():
        """Health check endpoint"""
        return {
            "status": "ok",
            "service": "xmap API",
            "version": "0.1.0",
        }

    return app


def _is_port_in_use(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            return False
        except OSError:
            return True


def serve(app: FastAPI, host: str = ServerConfig.HOST, port: int = ServerConfig.PORT) -> None:
    """Run the application under uvicorn, refusing to start on a busy port."""
    import uvicorn

    if _is_port_in_use(host, port):
        raise ConfigurationError(f"Port {port} is already in use on {host}", invalid_keys=["port"])
    logger.info(f"Starting xmap API on http://{host}:{port}")
    uvicorn.run(app, host=host, port=port)
