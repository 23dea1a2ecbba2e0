"""
Custom exception classes for the application.

Persistence failures are deliberately absent: errors raised by SQLAlchemy
propagate unchanged through every layer.
"""


class ApplicationError(Exception):
    """Base exception for all application errors"""

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(ApplicationError):
    """Raised when there's a configuration issue"""

    def __init__(self, message: str, invalid_keys: list[str] | None = None):
        details = {"invalid_keys": invalid_keys} if invalid_keys else {}
        super().__init__(message, details)


class ValidationError(ApplicationError):
    """Raised when a request body or key value cannot be accepted"""

    def __init__(self, message: str, invalid_fields: dict | None = None):
        details = {"invalid_fields": invalid_fields} if invalid_fields else {}
        super().__init__(message, details)


class KeyResolutionError(ValidationError):
    """Raised when a key does not fit the primary key of an entity type"""

    def __init__(self, entity: str, message: str):
        self.entity = entity
        super().__init__(message, {"entity": entity})


class MappingError(ApplicationError):
    """Raised when an entity/DTO map is missing or inconsistent"""

    def __init__(self, message: str, entity: str | None = None, dto: str | None = None):
        details = {k: v for k, v in (("entity", entity), ("dto", dto)) if v}
        super().__init__(message, details)


class QueryError(ApplicationError):
    """Base class for dynamic query failures"""


class QuerySyntaxError(QueryError):
    """Raised when a filter expression cannot be parsed or bound"""

    def __init__(self, message: str, expression: str | None = None, position: int | None = None):
        self.expression = expression
        self.position = position
        details = {}
        if expression is not None:
            details["expression"] = expression
        if position is not None:
            details["position"] = position
        super().__init__(message, details)


class QueryParameterError(QueryError):
    """Raised when a positional parameter is missing or unusable"""

    def __init__(self, message: str, index: int | None = None):
        self.index = index
        super().__init__(message, {"index": index} if index is not None else {})
