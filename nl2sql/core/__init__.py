"""
Core module initialization.
"""

from .database import DatabaseManager
from .executor import QueryExecutor
from .llm import LLMManager

__all__ = ["DatabaseManager", "QueryExecutor", "LLMManager"]
