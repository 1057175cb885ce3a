"""
One-time schema loader.

Reads column metadata for a table from the live SQLite database and turns it
into an immutable SchemaDescriptor. Called once when a table configuration is
built; request handling never re-queries metadata.
"""
from typing import List, Optional, Tuple

from error_handler import ConfigurationError
from logging_helper import LoggingHelper, LogType
from schema import ColumnSchema, SchemaDescriptor
from .query_builder import quote_identifier

logger = LoggingHelper.get_logger(LogType.MAIN)


def parse_column_type(column_type: str) -> str:
    """
    Map a declared SQL column type to a semantic field type.

    Most specific patterns are checked first, so TINYINT(1) is a boolean while
    any other integer type is a number.

    Examples:
        >>> parse_column_type('TINYINT(1)')
        'boolean'
        >>> parse_column_type('DECIMAL(10,2)')
        'number'
        >>> parse_column_type('VARCHAR(255)')
        'text'
    """
    col_type = (column_type or '').lower()

    if 'tinyint(1)' in col_type or 'boolean' in col_type or 'bit(1)' in col_type:
        return 'boolean'
    if 'int' in col_type:
        return 'number'
    if any(t in col_type for t in ('decimal', 'float', 'double', 'real', 'numeric')):
        return 'number'
    if 'datetime' in col_type or 'timestamp' in col_type:
        return 'datetime'
    if 'date' in col_type:
        return 'date'
    if 'time' in col_type:
        return 'time'
    if 'text' in col_type:
        return 'textarea'
    if 'enum' in col_type:
        return 'select'
    if 'varchar' in col_type:
        if 'email' in col_type:
            return 'email'
        return 'text'
    return 'text'


def load_schema(db, table_name: str) -> Tuple[SchemaDescriptor, Optional[str]]:
    """
    Load the schema of a base table.

    Args:
        db: DatabaseConnection
        table_name: Unaliased table name (trusted configuration)

    Returns:
        Tuple of (SchemaDescriptor, detected primary key or None)

    Raises:
        ConfigurationError: If the table does not exist
    """
    logger.debug(f"Loading table schema for {table_name}")
    rows = db.query(f"PRAGMA table_info({quote_identifier(table_name)})").fetch()
    if not rows:
        raise ConfigurationError(f"Table '{table_name}' does not exist or is not accessible")

    columns = []
    primary_key = None
    for row in rows:
        is_pk = bool(row['pk'])
        if is_pk and primary_key is None:
            primary_key = row['name']
        columns.append(ColumnSchema(
            row['name'],
            parse_column_type(row['type']),
            nullable=not row['notnull'],
            primary_key=is_pk,
            default=row['dflt_value'],
        ))

    logger.debug(f"Table schema loaded: {len(columns)} columns, primary key {primary_key}")
    return SchemaDescriptor(columns), primary_key


def list_tables(db) -> List[str]:
    """Names of the user tables in the database, sorted."""
    rows = db.query(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    ).fetch()
    return [row['name'] for row in rows]
