"""
Relational store - ground truth for memories and calendar events.
"""

from memsync.infrastructure.persistence.duckdb_store import DuckDBStore

__all__ = ["DuckDBStore"]
