"""
Dynamic filter expressions: parsing, binding and execution.
"""

from .engine import DynamicQueryEngine, is_blank
from .parser import parse_expression
from .parameters import normalize_parameters
from .vocabulary import DtoVocabulary, EntityVocabulary

__all__ = [
    "DynamicQueryEngine",
    "DtoVocabulary",
    "EntityVocabulary",
    "is_blank",
    "normalize_parameters",
    "parse_expression",
]
