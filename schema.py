"""
Column schema descriptors.

A SchemaDescriptor maps each column of a table to its semantic type,
nullability and (for select columns) the enumerated options. It is produced
once per table configuration and never changes afterwards.
"""
import types
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, Optional, Union

from constants import FIELD_TYPES
from error_handler import ConfigurationError


def unqualified_name(name: str) -> str:
    """
    Strip any table/alias qualifier from a column name.

    Examples:
        >>> unqualified_name('u.id')
        'id'
        >>> unqualified_name('id')
        'id'
    """
    return name.rsplit('.', 1)[-1] if name else name


def generate_label(field: str) -> str:
    """Turn a column name into a display label ('first_name' -> 'First Name')."""
    return ' '.join(part.capitalize() for part in field.replace('-', '_').split('_') if part)


class ColumnSchema:
    """
    Schema entry for one column.

    Args:
        name: Column name (unqualified)
        semantic_type: One of FIELD_TYPES
        nullable: Whether an empty value may be stored as NULL
        options: Allowed values for select columns, either a list of values
                 or a mapping of value -> label
        primary_key: Whether the column is (part of) the primary key
        default: Declared column default, informational only
    """

    def __init__(self, name: str, semantic_type: str = 'text', nullable: bool = True,
                 options: Optional[Union[Iterable[Any], Dict[Any, str]]] = None,
                 primary_key: bool = False, default: Any = None):
        if semantic_type not in FIELD_TYPES:
            raise ConfigurationError(f"Unknown field type '{semantic_type}' for column '{name}'")
        self._name = name
        self._semantic_type = semantic_type
        self._nullable = bool(nullable)
        self._primary_key = bool(primary_key)
        self._default = default
        if options is None:
            self._options = None
        elif isinstance(options, Mapping):
            self._options = types.MappingProxyType({str(k): str(v) for k, v in options.items()})
        else:
            self._options = types.MappingProxyType({str(v): str(v) for v in options})

    @property
    def name(self) -> str:
        return self._name

    @property
    def semantic_type(self) -> str:
        return self._semantic_type

    @property
    def nullable(self) -> bool:
        return self._nullable

    @property
    def options(self) -> Optional[Mapping]:
        return self._options

    @property
    def primary_key(self) -> bool:
        return self._primary_key

    @property
    def default(self) -> Any:
        return self._default

    def with_overrides(self, semantic_type: Optional[str] = None,
                       options: Optional[Union[Iterable[Any], Dict[Any, str]]] = None) -> 'ColumnSchema':
        """Return a copy with the type and/or options replaced by column configuration."""
        return ColumnSchema(
            self._name,
            semantic_type or self._semantic_type,
            self._nullable,
            options if options is not None else self._options,
            self._primary_key,
            self._default,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': self._semantic_type,
            'nullable': self._nullable,
            'options': dict(self._options) if self._options is not None else None,
        }

    def __repr__(self) -> str:
        return (f"ColumnSchema({self._name!r}, {self._semantic_type!r}, "
                f"nullable={self._nullable})")


class SchemaDescriptor(Mapping):
    """
    Read-only mapping of column name -> ColumnSchema.

    Lookups accept qualified names ('u.email') and resolve them to the
    unqualified column, since schema metadata only knows base-table columns.
    """

    def __init__(self, columns: Iterable[ColumnSchema] = ()):
        self._columns = types.MappingProxyType({col.name: col for col in columns})

    @classmethod
    def from_dict(cls, definition: Dict[str, Dict[str, Any]]) -> 'SchemaDescriptor':
        """
        Build a descriptor from an explicit definition.

        Example:
            SchemaDescriptor.from_dict({
                'email': {'type': 'email', 'nullable': False},
                'role': {'type': 'select', 'options': ['admin', 'user']},
            })
        """
        columns = []
        for name, spec in definition.items():
            columns.append(ColumnSchema(
                name,
                spec.get('type', 'text'),
                spec.get('nullable', True),
                spec.get('options'),
                spec.get('primary_key', False),
                spec.get('default'),
            ))
        return cls(columns)

    def __getitem__(self, name: str) -> ColumnSchema:
        if name in self._columns:
            return self._columns[name]
        return self._columns[unqualified_name(name)]

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        return name in self._columns or unqualified_name(name) in self._columns

    def __iter__(self) -> Iterator[str]:
        return iter(self._columns)

    def __len__(self) -> int:
        return len(self._columns)

    def primary_key(self) -> Optional[str]:
        """Return the first column flagged as primary key, if any."""
        for name, column in self._columns.items():
            if column.primary_key:
                return name
        return None

    def with_overrides(self, overrides: Dict[str, Dict[str, Any]]) -> 'SchemaDescriptor':
        """Apply per-column {'type', 'options'} overrides, ignoring unknown columns."""
        columns = []
        for name, column in self._columns.items():
            override = overrides.get(name)
            if override:
                column = column.with_overrides(override.get('type'), override.get('options'))
            columns.append(column)
        return SchemaDescriptor(columns)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name: column.to_dict() for name, column in self._columns.items()}
