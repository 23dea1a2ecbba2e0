"""
Dynamic query engine.

Turns an untyped filter expression plus positional parameters into the
matching rows of a query source. Filters are pushed into SQL whenever every
referenced field is a plain column; otherwise rows are streamed in batches
and filtered in memory, keeping only rows whose predicate is true (unknown
results from null comparisons are dropped, as SQL drops them).
"""

import logging
from typing import Any, Callable, List, Optional, Sequence

from sqlalchemy.orm import Query

from ..constants import DEFAULT_STREAM_BATCH_SIZE
from .specifications import Specification
from .compiler import compile_expression
from .parameters import normalize_parameters
from .parser import parse_expression

logger = logging.getLogger(__name__)


def is_blank(expression: Optional[str]) -> bool:
    return expression is None or not expression.strip()


class DynamicQueryEngine:
    def __init__(self, batch_size: int = DEFAULT_STREAM_BATCH_SIZE):
        self.batch_size = batch_size

    def compile(self, expression: str, parameters: Optional[Sequence[Any]], vocabulary) -> Specification:
        """
        Parse and bind an expression.

        Raises:
            QuerySyntaxError: malformed expression or unknown field
            QueryParameterError: missing or unusable parameter
        """
        tree = parse_expression(expression)
        return compile_expression(expression, tree, vocabulary, normalize_parameters(parameters))

    def execute(
        self,
        source: Query,
        expression: Optional[str],
        parameters: Optional[Sequence[Any]],
        vocabulary,
        project: Optional[Callable[[Any], Any]] = None,
    ) -> Optional[List[Any]]:
        """
        Run a filter expression against a query source.

        Args:
            source: Query over the entity rows
            expression: Filter expression; blank means "no query"
            parameters: Positional parameters for @0, @1, ...
            vocabulary: EntityVocabulary or DtoVocabulary the expression is written in
            project: Optional entity -> representation function applied to matches;
                the expression is then evaluated against the projected shape

        Returns:
            Materialised list of matches, or None for a blank expression
        """
        if is_blank(expression):
            return None

        spec = self.compile(expression, parameters, vocabulary)
        project = project or (lambda row: row)

        if spec.can_push_down:
            logger.debug(f"Filtering in database: {expression}")
            return [project(row) for row in source.filter(spec.to_sql_filter()).all()]

        logger.debug(f"Filtering in memory (batch size {self.batch_size}): {expression}")
        matches = []
        for row in source.yield_per(self.batch_size):
            candidate = project(row)
            if spec.is_satisfied_by(candidate) is True:
                matches.append(candidate)
        return matches
