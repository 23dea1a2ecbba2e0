"""
Data Transfer Objects shared by every generated endpoint.

- query_envelope: request/response pairing of a filter expression, its
  parameters and the materialised result
- marker: per-DTO opt-in into endpoint generation
"""

from .marker import EndpointMarker
from .query_envelope import QueryEnvelope

__all__ = ["EndpointMarker", "QueryEnvelope"]
