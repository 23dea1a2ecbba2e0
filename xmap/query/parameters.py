"""
Positional parameter normalisation.

Every parameter goes through a JSON round-trip before it is substituted so
that numbers, booleans and dates compare correctly whatever shape the caller
sent them in. What is left is raw literal text: a serialised string loses its
surrounding quotes (its content is kept verbatim, embedded quotes included),
numbers and booleans become their JSON spelling, null becomes None.
"""

import json
from typing import Any, List, Optional, Sequence, Tuple, Union

from ..exceptions import QueryParameterError

NormalizedParameter = Union[None, str, Tuple[Optional[str], ...]]


def _normalize_scalar(value: Any, index: int) -> Optional[str]:
    if isinstance(value, dict):
        raise QueryParameterError(f"Parameter @{index} is an object; only scalars and lists are supported", index)
    if isinstance(value, (list, tuple)):
        raise QueryParameterError(f"Parameter @{index} contains a nested list", index)
    serialized = json.dumps(value, default=str)
    if serialized == 'null':
        return None
    if serialized.startswith('"') and serialized.endswith('"'):
        # Strip the quoting the serialisation introduced
        return json.loads(serialized)
    return serialized


def normalize_parameter(value: Any, index: int) -> NormalizedParameter:
    if isinstance(value, (list, tuple)):
        return tuple(_normalize_scalar(item, index) for item in value)
    return _normalize_scalar(value, index)


def normalize_parameters(parameters: Optional[Sequence[Any]]) -> List[NormalizedParameter]:
    """
    Normalise a positional parameter list.

    Raises:
        QueryParameterError: if a parameter is an object or a nested list
    """
    return [normalize_parameter(value, index) for index, value in enumerate(parameters or [])]
