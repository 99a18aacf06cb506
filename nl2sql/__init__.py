"""
nl2sql: natural language questions to SQL.

Questions are translated by a local Ollama model when one is available, with
a rule-based generator as fallback, then executed against the configured
database.
"""

__version__ = "0.1.0"
