"""
Structured Logging Utilities

Adds request-scoped context (route, entity, dto, operation) to log records
and provides the decorator that gives every repository operation the same
log-and-re-raise failure policy.
"""

import inspect
import logging
import sys
from contextvars import ContextVar
from functools import wraps
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

from ..constants import LOG_FORMAT, LOG_FILE_MAX_BYTES, LOG_FILE_BACKUP_COUNT
from ..exceptions import ApplicationError

# Context variable for request-scoped logging context
_logging_context: ContextVar[Dict[str, Any]] = ContextVar('logging_context', default={})

# Nesting depth of logged operations; only the outermost one reports failures
_operation_depth: ContextVar[int] = ContextVar('operation_depth', default=0)

_CONTEXT_ATTRIBUTES = ("entity", "dto", "model")


class StructuredLogger(logging.LoggerAdapter):
    """
    Logger adapter that stamps every record with the request-scoped context
    (route, entity, dto, operation) plus any per-call ``extra``.

    Usage:
        logger = StructuredLogger(__name__)
        logger.warning("Route name repeated", extra={"dto": "ItemDto"})
    """

    def __init__(self, name: str):
        super().__init__(logging.getLogger(name), {})

    def process(self, msg, kwargs):
        kwargs["extra"] = {**_logging_context.get(), **(kwargs.get("extra") or {})}
        return msg, kwargs


def set_logging_context(**kwargs):
    """
    Set logging context for the current request/operation.

    Example:
        set_logging_context(route="/entities/ItemDto", entity="Item", dto="ItemDto")
    """
    context = _logging_context.get().copy()
    context.update(kwargs)
    _logging_context.set(context)


def clear_logging_context():
    """Clear the logging context."""
    _logging_context.set({})


def get_logging_context() -> Dict[str, Any]:
    return _logging_context.get().copy()


def configure_logging(settings) -> logging.Logger:
    """
    Configure the root logger: console always, rotating file when a log
    directory is configured.

    Args:
        settings: Settings instance

    Returns:
        The package logger
    """
    log_formatter = logging.Formatter(LOG_FORMAT)
    root_logger = logging.getLogger()
    level = getattr(logging, settings.log_level, logging.INFO)
    root_logger.setLevel(level)

    if not any(getattr(h, '_xmap_handler', False) for h in root_logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(log_formatter)
        console_handler.setLevel(level)
        console_handler._xmap_handler = True
        root_logger.addHandler(console_handler)

        if settings.log_dir:
            settings.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                settings.log_dir / "xmap.log",
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUP_COUNT,
                encoding='utf-8'
            )
            file_handler.setFormatter(log_formatter)
            file_handler.setLevel(level)
            file_handler._xmap_handler = True
            root_logger.addHandler(file_handler)

    logger = logging.getLogger('xmap')
    logger.info(f"Logging initialized at {settings.log_level}")
    return logger


def _operation_context(operation_name: str, args: tuple) -> Dict[str, Any]:
    context = {"operation": operation_name}
    # Repositories expose the types they serve; pick them up from ``self``
    if args:
        owner = args[0]
        for attribute in _CONTEXT_ATTRIBUTES:
            value = getattr(owner, attribute, None)
            if isinstance(value, type):
                context[attribute] = value.__name__
    return context


def _log_failure(logger: StructuredLogger, operation_name: str, context: Dict[str, Any], error: Exception) -> None:
    if _operation_depth.get() > 1:
        return
    extra = {**context, "error": str(error), "error_type": type(error).__name__}
    if isinstance(error, ApplicationError):
        logger.warning(f"Rejected {operation_name}: {error}", extra=extra)
    else:
        logger.error(f"Failed {operation_name}: {error}", extra=extra, exc_info=True)


def log_operation(operation_name: str):
    """
    Decorator that logs operation start/end and failures.

    Failures are re-raised unchanged; no translation, no retry. Only the
    outermost logged operation reports a failure: application errors at
    warning level, anything else (persistence errors included) at error
    level with traceback.

    Example:
        @log_operation("find_by_key")
        async def find_by_key(self, key):
            ...
    """
    def decorator(func):
        logger = StructuredLogger(func.__module__)

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                context = _operation_context(operation_name, args)
                logger.debug(f"Starting {operation_name}", extra=context)
                depth = _operation_depth.set(_operation_depth.get() + 1)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _log_failure(logger, operation_name, context, e)
                    raise
                finally:
                    _operation_depth.reset(depth)
                logger.debug(f"Completed {operation_name}", extra=context)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            context = _operation_context(operation_name, args)
            logger.debug(f"Starting {operation_name}", extra=context)
            depth = _operation_depth.set(_operation_depth.get() + 1)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _log_failure(logger, operation_name, context, e)
                raise
            finally:
                _operation_depth.reset(depth)
            logger.debug(f"Completed {operation_name}", extra=context)
            return result
        return sync_wrapper

    return decorator
