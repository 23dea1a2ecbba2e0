"""
Generated HTTP surface: registry, operation tables and route binding.
"""

from .binder import EndpointBinder
from .operations import OperationTable, invoke, invoke_sync
from .registry import EndpointRegistry

__all__ = ["EndpointBinder", "EndpointRegistry", "OperationTable", "invoke", "invoke_sync"]
