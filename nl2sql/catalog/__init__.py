"""
Catalog module initialization.
"""

from .schema_inspector import SchemaInspector
from .relevance_filter import RelevanceFilter

__all__ = ["SchemaInspector", "RelevanceFilter"]
