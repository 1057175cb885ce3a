"""
Query builder module for the DataTables engine.
Assembles parameterized SQL from a table configuration; never executes anything.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple

from constants import SEARCH_ALL_COLUMNS, SORT_DIRECTIONS
from error_handler import NoValidDataError, ValidationError
from helpers.pagination_helpers import calculate_offset
from schema import unqualified_name

Query = Tuple[str, List[Any]]


def quote_identifier(token: str) -> str:
    """
    Quote a column or table token with backticks.

    Tokens containing a '.' (qualified name) or a space (raw aliased fragment)
    are passed through untouched. Only trusted configuration strings may reach
    those positions; request input never does.

    Examples:
        >>> quote_identifier('email')
        '`email`'
        >>> quote_identifier('u.email')
        'u.email'
    """
    if '.' in token or ' ' in token:
        return token
    return '`' + token.replace('`', '``') + '`'


def quote_alias(alias: str) -> str:
    """Quote an output column alias; aliases are always quoted."""
    return '`' + alias.replace('`', '``') + '`'


def render_where(group, qualify=None) -> Query:
    """
    Render a WhereGroup tree into SQL and its parameter list.

    Args:
        group: WhereGroup of WhereCondition/WhereGroup items
        qualify: Optional callable rewriting field names (base-table statements)

    Returns:
        Tuple of (sql, params); sql is empty when the group has no conditions
    """
    parts: List[str] = []
    params: List[Any] = []

    for item in group.conditions:
        if hasattr(item, 'conditions'):
            sub_sql, sub_params = render_where(item, qualify)
            if sub_sql:
                parts.append(f"({sub_sql})")
                params.extend(sub_params)
            continue

        field = qualify(item.field) if qualify else item.field
        column = quote_identifier(field)
        comparator = item.comparator

        if comparator in ('IN', 'NOT IN'):
            values = list(item.value) if isinstance(item.value, (list, tuple, set, frozenset)) else [item.value]
            if not values:
                # Empty IN matches nothing, empty NOT IN matches everything
                parts.append('1 = 0' if comparator == 'IN' else '1 = 1')
                continue
            placeholders = ', '.join('?' for _ in values)
            parts.append(f"{column} {comparator} ({placeholders})")
            params.extend(values)
        elif item.value is None and comparator in ('=', '!='):
            parts.append(f"{column} IS NULL" if comparator == '=' else f"{column} IS NOT NULL")
        else:
            parts.append(f"{column} {comparator} ?")
            params.append(item.value)

    return f" {group.operator} ".join(parts), params


class TableQueryBuilder:
    """
    Builds every statement the request dispatcher needs for one table.

    Provides:
    - Paged/sorted/searched SELECT and the matching COUNT
    - Single-row SELECT for the edit form
    - INSERT, UPDATE, single-column UPDATE (inline edit)
    - Single and bulk DELETE

    Every statement against the base table is scoped by the configured WHERE
    conditions, and every request-derived value is bound as a parameter.

    Example usage:
        builder = TableQueryBuilder(config)
        sql, params = builder.build_select(search='foo', sort_column='name',
                                           sort_direction='DESC', page=2, per_page=25)
        rows = db.query(sql).bind(params).fetch()
    """

    def __init__(self, config):
        """
        Initialize query builder with a table configuration.

        Args:
            config: TableConfig instance
        """
        self._config = config

    # =========================================================================
    # Shared pieces
    # =========================================================================

    def _select_list(self) -> str:
        fields = []
        column_names = set()
        for name in self._config.columns:
            column_names.add(unqualified_name(name))
            if ' ' in name:
                # Raw fragment already carries its own alias
                fields.append(name)
            else:
                fields.append(f"{quote_identifier(name)} AS {quote_alias(name)}")

        pk = self._config.primary_key
        pk_column = unqualified_name(pk)
        if pk_column not in column_names:
            if self._config.joins and '.' not in pk:
                # Joined tables may share the key name
                pk = f"{self._config.table_name.split()[-1]}.{pk}"
            fields.insert(0, f"{quote_identifier(pk)} AS {quote_alias(pk_column)}")

        return ', '.join(fields)

    def _from_clause(self) -> str:
        sql = f"FROM {quote_identifier(self._config.table_name)}"
        for join in self._config.joins:
            sql += f" {join.type} JOIN {quote_identifier(join.table)} ON {join.condition}"
        return sql

    def _base_qualifier(self, field: str) -> str:
        """Drop a qualifier naming the base table or its alias."""
        if '.' in field and ' ' not in field:
            qualifier, column = field.rsplit('.', 1)
            if qualifier in self._config.base_names:
                return column
        return field

    def _scoping(self, base_table: bool = False) -> Query:
        qualify = self._base_qualifier if base_table else None
        return render_where(self._config.where, qualify)

    @staticmethod
    def _wrap(sql: str, operator: str) -> str:
        return f"({sql})" if operator == 'OR' else sql

    def _base_where(self, key_sql: str, key_params: List[Any]) -> Query:
        """Combine configured scoping with a primary-key predicate (always AND)."""
        scoping_sql, scoping_params = self._scoping(base_table=True)
        if scoping_sql:
            return (f"WHERE {self._wrap(scoping_sql, self._config.where.operator)} AND {key_sql}",
                    scoping_params + key_params)
        return f"WHERE {key_sql}", list(key_params)

    def _pk_column(self) -> str:
        return quote_identifier(unqualified_name(self._config.primary_key))

    def _writable_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        pk_column = unqualified_name(self._config.primary_key)
        return {
            unqualified_name(name): value
            for name, value in fields.items()
            if unqualified_name(name) != pk_column
        }

    # =========================================================================
    # Search / sort resolution
    # =========================================================================

    def resolve_search_column(self, search_column: Optional[str]) -> Optional[str]:
        """
        Map a requested search column onto a configured column.

        Returns:
            The configured column name, or None for the all-column search
        """
        if not search_column or search_column == SEARCH_ALL_COLUMNS:
            return None
        if search_column in self._config.columns:
            return search_column
        for name in self._config.columns:
            if ' ' not in name and unqualified_name(name) == unqualified_name(search_column):
                return name
        return None

    def searchable_columns(self) -> List[str]:
        """Configured columns a LIKE predicate can target (raw fragments excluded)."""
        return [name for name in self._config.columns if ' ' not in name]

    def is_sortable(self, column: Optional[str]) -> bool:
        return bool(column) and column in self._config.sortable_columns

    def _filter(self, search: str, search_column: Optional[str]) -> Query:
        scoping_sql, params = self._scoping()
        clauses = []
        if scoping_sql:
            clauses.append(self._wrap(scoping_sql, self._config.where.operator))

        if search:
            pattern = f"%{search}%"
            column = self.resolve_search_column(search_column)
            if column:
                clauses.append(f"({quote_identifier(column)} LIKE ?)")
                params.append(pattern)
            else:
                searchable = self.searchable_columns()
                if searchable:
                    conditions = ' OR '.join(f"{quote_identifier(c)} LIKE ?" for c in searchable)
                    clauses.append(f"({conditions})")
                    params.extend([pattern] * len(searchable))

        if not clauses:
            return '', params
        return ' WHERE ' + ' AND '.join(clauses), params

    # =========================================================================
    # Statements
    # =========================================================================

    def build_select(self, search: str = '', search_column: Optional[str] = None,
                     sort_column: Optional[str] = None, sort_direction: str = 'ASC',
                     page: int = 1, per_page: int = 25) -> Query:
        """
        Build the paged list query.

        Args:
            search: Search term ('' for none)
            search_column: Column to search, or 'all'/None for every column
            sort_column: Requested sort column; ignored unless allow-listed
            sort_direction: 'ASC' or 'DESC' (anything else means ASC)
            page: Page number (1-indexed)
            per_page: Rows per page; 0 returns every row

        Returns:
            Tuple of (query_string, parameters)
        """
        where_sql, params = self._filter(search, search_column)
        sql = f"SELECT {self._select_list()} {self._from_clause()}{where_sql}"

        if self.is_sortable(sort_column):
            direction = sort_direction.strip().upper() if sort_direction else 'ASC'
            if direction not in SORT_DIRECTIONS:
                direction = 'ASC'
            sql += f" ORDER BY {quote_identifier(sort_column)} {direction}"

        if per_page > 0:
            sql += " LIMIT ?, ?"
            params.extend([calculate_offset(page, per_page), per_page])

        return sql, params

    def build_count(self, search: str = '', search_column: Optional[str] = None) -> Query:
        """Build the COUNT query sharing the list query's FROM/JOIN/WHERE pipeline."""
        where_sql, params = self._filter(search, search_column)
        return f"SELECT COUNT(*) AS total {self._from_clause()}{where_sql}", params

    def build_fetch_one(self, pk_value: Any) -> Query:
        """Build the single-row SELECT used to populate the edit form."""
        where_sql, params = self._base_where(f"{self._pk_column()} = ?", [pk_value])
        return f"SELECT * FROM {quote_identifier(self._config.base_table)} {where_sql}", params

    def build_insert(self, fields: Dict[str, Any]) -> Query:
        """
        Build an INSERT against the base table.

        Raises:
            NoValidDataError: If no field is left once the primary key is removed
        """
        data = self._writable_fields(fields)
        if not data:
            raise NoValidDataError('No valid data to insert')
        columns = ', '.join(quote_identifier(name) for name in data)
        placeholders = ', '.join('?' for _ in data)
        sql = f"INSERT INTO {quote_identifier(self._config.base_table)} ({columns}) VALUES ({placeholders})"
        return sql, list(data.values())

    def build_update(self, fields: Dict[str, Any], pk_value: Any) -> Query:
        """
        Build an UPDATE scoped by configured WHERE and the primary key.

        Parameter order: set values, scoping values, primary key value.

        Raises:
            NoValidDataError: If no field is left once the primary key is removed
        """
        data = self._writable_fields(fields)
        if not data:
            raise NoValidDataError('No valid data to update')
        set_clause = ', '.join(f"{quote_identifier(name)} = ?" for name in data)
        where_sql, where_params = self._base_where(f"{self._pk_column()} = ?", [pk_value])
        sql = f"UPDATE {quote_identifier(self._config.base_table)} SET {set_clause} {where_sql}"
        return sql, list(data.values()) + where_params

    def build_inline_update(self, field: str, value: Any, pk_value: Any) -> Query:
        """Build a single-column UPDATE for inline editing."""
        return self.build_update({field: value}, pk_value)

    def build_delete(self, pk_value: Any) -> Query:
        """Build a single-row DELETE scoped by configured WHERE and the primary key."""
        where_sql, params = self._base_where(f"{self._pk_column()} = ?", [pk_value])
        return f"DELETE FROM {quote_identifier(self._config.base_table)} {where_sql}", params

    def build_bulk_delete(self, ids: Sequence[Any]) -> Query:
        """
        Build a multi-row DELETE; ids are bound after the scoping parameters.

        Raises:
            ValidationError: If ids is empty
        """
        if not ids:
            raise ValidationError('No records selected')
        placeholders = ', '.join('?' for _ in ids)
        where_sql, params = self._base_where(f"{self._pk_column()} IN ({placeholders})", list(ids))
        return f"DELETE FROM {quote_identifier(self._config.base_table)} {where_sql}", params
