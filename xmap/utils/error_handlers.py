"""
Error handling decorator for the generated endpoints.

Repositories never translate failures; this is the one place where
application errors become HTTP responses.
"""

import inspect
import logging
from functools import wraps
from typing import Callable

from fastapi import HTTPException

from ..constants import HTTPStatus
from ..exceptions import (
    ApplicationError,
    ConfigurationError,
    MappingError,
    QueryError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _to_http_exception(operation_name: str, error: Exception) -> HTTPException:
    if isinstance(error, (ValidationError, QueryError)):
        logger.warning(f"{operation_name} - Rejected request: {error.message}")
        return HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=error.message)
    if isinstance(error, ConfigurationError):
        logger.error(f"{operation_name} - Configuration error: {error.message}", exc_info=True)
        return HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"Configuration error: {error.message}"
        )
    if isinstance(error, MappingError):
        logger.error(f"{operation_name} - Mapping error: {error.message}", exc_info=True)
        return HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"Mapping failed: {error.message}"
        )
    if isinstance(error, ApplicationError):
        logger.error(f"{operation_name} - Application error: {error.message}", exc_info=True)
        return HTTPException(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            detail=f"{operation_name} failed: {error.message}"
        )
    logger.error(f"{operation_name} - Unexpected error: {error}", exc_info=True)
    return HTTPException(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
        detail=f"{operation_name} failed. Please check server logs."
    )


def handle_api_errors(operation_name: str):
    """
    Decorator to handle errors consistently across generated endpoints.

    Args:
        operation_name: Human-readable name of the operation (e.g., "Create ItemDto")

    Example:
        @handle_api_errors("Query ItemDto")
        def query(...):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except HTTPException:
                # Re-raise HTTPException as-is to preserve status code and detail
                raise
            except Exception as e:
                raise _to_http_exception(operation_name, e) from e

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as e:
                raise _to_http_exception(operation_name, e) from e

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
