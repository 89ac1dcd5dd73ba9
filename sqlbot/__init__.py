# SQLBot Package
"""
Natural-language and SQL database assistant.

Questions are turned into a single read-only SQL statement by an LLM,
checked, executed against a dbt-profile database and shown in a rich
terminal session.
"""

__version__ = "1.0.0"
__author__ = "SQLBot Team"

__all__ = ["__version__"]
