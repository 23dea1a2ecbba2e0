"""
Application-wide constants.

Route templates, operation names and HTTP status codes used by the
generated endpoints live here so the binder and the tests agree on them.
"""
from enum import Enum


class Operation(str, Enum):
    """The seven operations generated for every exposed type."""

    LIST = 'list'
    LIST_LAZY = 'list_lazy'
    FIND = 'find'
    CREATE = 'create'
    UPDATE = 'update'
    DELETE = 'delete'
    QUERY = 'query'


class RouteTemplates:
    """Path templates, formatted with the route prefix and the type name."""

    LIST = "{prefix}/{name}"
    LIST_LAZY = "{lazy_prefix}/{name}"
    FIND = "{prefix}/{name}/{{key}}"
    DELETE = "{prefix}/delete/{name}"
    QUERY = "{prefix}/query/{name}"


class ServerConfig:
    """Defaults for serve()"""

    HOST = "127.0.0.1"
    PORT = 8000


class EnvKeys:
    """Environment variables read by Settings.from_env()"""

    DATABASE_URL = 'XMAP_DATABASE_URL'
    REQUIRE_AUTH = 'XMAP_REQUIRE_AUTH'
    API_TOKENS = 'XMAP_API_TOKENS'
    ROUTE_PREFIX = 'XMAP_ROUTE_PREFIX'
    LAZY_ROUTE_PREFIX = 'XMAP_LAZY_ROUTE_PREFIX'
    STREAM_BATCH_SIZE = 'XMAP_STREAM_BATCH_SIZE'
    LOG_DIR = 'XMAP_LOG_DIR'
    LOG_LEVEL = 'XMAP_LOG_LEVEL'


class HTTPStatus:
    """HTTP status codes used throughout the application"""

    # Success
    CREATED = 201
    NO_CONTENT = 204

    # Client Errors
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404

    # Server Errors
    INTERNAL_SERVER_ERROR = 500


TRUTHY_VALUES = ('true', '1', 'yes')

DEFAULT_DATABASE_URL = 'sqlite:///./xmap.db'
DEFAULT_STREAM_BATCH_SIZE = 500
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024  # 10MB
LOG_FILE_BACKUP_COUNT = 5
