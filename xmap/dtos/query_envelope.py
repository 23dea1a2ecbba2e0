"""
Query Envelope DTO

Echoes the caller's expression and parameters back next to the result so
request and response can be correlated.
"""

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')


class QueryEnvelope(BaseModel, Generic[T]):
    """
    Filter expression (``Qry``), positional parameters (``Pars``) and the
    filled-in result (``Result``). A blank expression leaves ``Result`` unset.
    """

    model_config = ConfigDict(populate_by_name=True)

    qry: Optional[str] = Field(None, alias="Qry", description="Filter expression, e.g. Name == @0")
    pars: Optional[List[Any]] = Field(None, alias="Pars", description="Positional parameters for @0, @1, ...")
    result: Optional[List[T]] = Field(None, alias="Result", description="Matching records")
