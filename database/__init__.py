"""
Database module for the DataTables engine.
Provides the connection collaborator, schema loading and SQL assembly.
"""
from typing import Optional

from error_handler import validate_environment_variable
from .connection import DatabaseConnection, Statement, DEFAULT_DB_PATH, MEMORY_DB
from .query_builder import TableQueryBuilder, quote_identifier, render_where
from .schema_loader import list_tables, load_schema, parse_column_type

__all__ = [
    'DatabaseConnection',
    'Statement',
    'TableQueryBuilder',
    'quote_identifier',
    'render_where',
    'list_tables',
    'load_schema',
    'parse_column_type',
    'get_database',
]

# Global database instance
_db_instance: Optional[DatabaseConnection] = None


def get_database() -> DatabaseConnection:
    """Get or create the global database connection (path from DATATABLES_DB_PATH)."""
    global _db_instance
    if _db_instance is None:
        db_path = validate_environment_variable('DATATABLES_DB_PATH', default=str(DEFAULT_DB_PATH))
        _db_instance = DatabaseConnection(db_path)
    return _db_instance
