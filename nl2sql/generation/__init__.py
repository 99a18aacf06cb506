"""
Generation module initialization.
"""

from .rule_based import RuleBasedGenerator
from .prompt_builder import PromptBuilder
from .model_generator import ModelSQLGenerator
from .suggestions import get_example_queries

__all__ = ["RuleBasedGenerator", "PromptBuilder", "ModelSQLGenerator", "get_example_queries"]
