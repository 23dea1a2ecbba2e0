from dataclasses import dataclass
from typing import Type


@dataclass(frozen=True)
class EndpointMarker:
    """
    Opt-in of a DTO into endpoint generation.

    ``include_children`` loads to-many relations when a single record is
    materialised; list and query endpoints never expand collections.
    """

    dto: Type
    include_children: bool = False
