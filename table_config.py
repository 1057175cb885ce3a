"""
Declarative table configuration.

DataTable is the fluent builder a page uses to describe a table; build()
returns an immutable TableConfig shared by every request against that table.

Example:
    config = (DataTable(db)
              .table('users u')
              .columns({'u.name': 'Name', 'u.email': {'label': 'Email', 'type': 'email'}})
              .join('LEFT', 'teams t', 't.id = u.team_id')
              .where('u.tenant_id', '=', 7)
              .sortable(['u.name', 'u.email'])
              .inline_editable(['u.name'])
              .bulk_actions(True, {'activate': BulkAction('activate', 'Activate', handler=activate)})
              .primary_key('u.id')
              .build())
"""
import re
import types
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from constants import (
    BULK_DELETE,
    DEFAULT_ALLOWED_EXTENSIONS,
    DEFAULT_BULK_ACTIONS,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PAGE_SIZE_OPTIONS,
    DEFAULT_RECORDS_PER_PAGE,
    DEFAULT_UPLOAD_PATH,
    JOIN_TYPES,
    WHERE_COMPARATORS,
    WHERE_OPERATORS,
)
from database.schema_loader import load_schema
from error_handler import ConfigurationError
from logging_helper import LoggingHelper, LogType
from schema import SchemaDescriptor, generate_label, unqualified_name

logger = LoggingHelper.get_logger(LogType.MAIN)

# Configuration identifiers: letters, digits, underscore, dash, dot (space for aliases)
_IDENTIFIER_STRIP = re.compile(r'[^A-Za-z0-9_.\-]')
_TABLE_STRIP = re.compile(r'[^A-Za-z0-9_.\- ]')


def sanitize_identifier(value: str, allow_alias: bool = False) -> str:
    """Remove characters that can never appear in a configured identifier."""
    pattern = _TABLE_STRIP if allow_alias else _IDENTIFIER_STRIP
    return ' '.join(pattern.sub('', value.strip()).split())


# =============================================================================
# Action handlers
# =============================================================================

class BulkActionHandler(ABC):
    """A bulk operation over a set of selected row ids."""

    @abstractmethod
    def execute(self, ids: List[int], db, table_name: str) -> Union[bool, int]:
        """
        Apply the action.

        Returns:
            False on failure, True on success, or the number of affected rows
        """


class RowActionHandler(ABC):
    """A custom per-row action triggered from the row's action buttons."""

    @abstractmethod
    def execute(self, row_id: int, row_data: Dict[str, Any], db, table_name: str) -> bool:
        """
        Apply the action to one row.

        row_data is the snapshot the client echoed back: advisory only.
        Re-fetch the row when correctness depends on its current state.
        """


class CallbackHandler(BulkActionHandler, RowActionHandler):
    """Adapts a plain function to either handler interface."""

    def __init__(self, func: Callable[..., Any]):
        self._func = func

    def execute(self, *args):
        return self._func(*args)


def _as_handler(handler):
    if handler is None or isinstance(handler, (BulkActionHandler, RowActionHandler)):
        return handler
    if callable(handler):
        return CallbackHandler(handler)
    raise ConfigurationError(f"Action handler must be callable, got {type(handler).__name__}")


class BulkAction:
    """
    A registered bulk action.

    Args:
        name: Key sent by the client as bulk_action
        label: Button/option label
        confirm: Confirmation text shown before running
        handler: BulkActionHandler or plain function (ids, db, table_name);
                 None only for the built-in delete
        icon: Icon name for the renderer
        success_message / error_message: Messages reported to the client
    """

    def __init__(self, name: str, label: Optional[str] = None, confirm: Optional[str] = None,
                 handler=None, icon: Optional[str] = None,
                 success_message: str = 'Bulk action completed successfully',
                 error_message: str = 'Bulk action failed'):
        self.name = name
        self.label = label or generate_label(name)
        self.confirm = confirm
        self.handler = _as_handler(handler)
        self.icon = icon
        self.success_message = success_message
        self.error_message = error_message

    @property
    def is_builtin_delete(self) -> bool:
        return self.name == BULK_DELETE and self.handler is None

    def to_dict(self) -> Dict[str, Any]:
        return {'label': self.label, 'confirm': self.confirm, 'icon': self.icon}


class RowAction:
    """A custom row action placed in an action group."""

    def __init__(self, name: str, handler=None, title: Optional[str] = None,
                 icon: Optional[str] = None, css_class: Optional[str] = None,
                 success_message: str = 'Action completed successfully',
                 error_message: str = 'Action failed'):
        self.name = name
        self.handler = _as_handler(handler)
        self.title = title or generate_label(name)
        self.icon = icon or 'link'
        self.css_class = css_class or 'btn-custom'
        self.success_message = success_message
        self.error_message = error_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'icon': self.icon,
            'class': self.css_class,
            'callback': self.handler is not None,
        }


class ActionConfig:
    """
    Row action layout.

    groups is a list where each group is either a list of built-in action
    names (['edit', 'delete']) or a mapping of name -> RowAction.
    """

    def __init__(self, position: str = 'end', show_edit: bool = True, show_delete: bool = True,
                 groups: Sequence[Union[Sequence[str], Dict[str, RowAction]]] = ()):
        if position not in ('start', 'end'):
            raise ConfigurationError(f"Action position must be 'start' or 'end', got '{position}'")
        self.position = position
        self.show_edit = show_edit
        self.show_delete = show_delete
        normalized = []
        for group in groups:
            if isinstance(group, dict):
                actions = {}
                for name, action in group.items():
                    if not isinstance(action, RowAction):
                        action = RowAction(name, **action) if isinstance(action, dict) else RowAction(name, action)
                    actions[name] = action
                normalized.append(types.MappingProxyType(actions))
            else:
                normalized.append(tuple(group))
        self.groups = tuple(normalized)

    def find_row_action(self, name: str) -> Optional[RowAction]:
        """Scan the configured groups for a custom action with a handler."""
        for group in self.groups:
            if isinstance(group, types.MappingProxyType):
                action = group.get(name)
                if action is not None and action.handler is not None:
                    return action
        return None

    def to_dict(self) -> Dict[str, Any]:
        groups = []
        for group in self.groups:
            if isinstance(group, types.MappingProxyType):
                groups.append({name: action.to_dict() for name, action in group.items()})
            else:
                groups.append(list(group))
        return {
            'position': self.position,
            'show_edit': self.show_edit,
            'show_delete': self.show_delete,
            'groups': groups,
        }


# =============================================================================
# Query configuration
# =============================================================================

class JoinSpec:
    """A JOIN clause; condition is a trusted raw SQL fragment."""

    def __init__(self, join_type: str, table: str, condition: str):
        join_type = sanitize_identifier(join_type).upper()
        if join_type not in JOIN_TYPES:
            raise ConfigurationError(f"Unsupported join type: {join_type}")
        self.type = join_type
        self.table = sanitize_identifier(table, allow_alias=True)
        self.condition = condition


class WhereCondition:
    """field <comparator> value, applied to every scoped statement."""

    def __init__(self, field: str, comparator: str, value: Any):
        comparator = ' '.join(comparator.upper().split())
        if comparator not in WHERE_COMPARATORS:
            raise ConfigurationError(f"Unsupported comparator: {comparator}")
        self.field = field
        self.comparator = comparator
        self.value = tuple(value) if isinstance(value, (list, set, frozenset)) else value


class WhereGroup:
    """Conditions and nested groups joined by one boolean operator."""

    def __init__(self, operator: str = 'AND', conditions: Iterable[Union[WhereCondition, 'WhereGroup']] = ()):
        operator = operator.upper()
        if operator not in WHERE_OPERATORS:
            raise ConfigurationError(f"Unsupported where operator: {operator}")
        self.operator = operator
        self.conditions = tuple(conditions)

    def __bool__(self) -> bool:
        return bool(self.conditions)


class FileUploadPolicy:
    """Where uploads go and what is accepted."""

    def __init__(self, upload_path: str = DEFAULT_UPLOAD_PATH,
                 allowed_extensions: Optional[Iterable[str]] = None,
                 max_file_size: int = DEFAULT_MAX_FILE_SIZE):
        self.upload_path = upload_path.rstrip('/') or DEFAULT_UPLOAD_PATH
        self.allowed_extensions = frozenset(
            ext.lower().lstrip('.') for ext in (allowed_extensions or DEFAULT_ALLOWED_EXTENSIONS)
        )
        self.max_file_size = int(max_file_size)

    def is_extension_allowed(self, extension: str) -> bool:
        return extension.lower() in self.allowed_extensions


# =============================================================================
# Table configuration
# =============================================================================

class TableConfig:
    """
    Immutable configuration for one table widget.

    Built once by DataTable.build(); every request reads it, nothing writes it.
    """

    def __init__(self, table_name: str, primary_key: str, columns: Dict[str, str],
                 schema: SchemaDescriptor, joins: Sequence[JoinSpec] = (),
                 sortable_columns: Iterable[str] = (), inline_editable_columns: Iterable[str] = (),
                 where: Optional[WhereGroup] = None, bulk_actions_enabled: bool = False,
                 bulk_actions: Optional[Dict[str, BulkAction]] = None,
                 action_config: Optional[ActionConfig] = None,
                 file_upload: Optional[FileUploadPolicy] = None,
                 records_per_page: int = DEFAULT_RECORDS_PER_PAGE,
                 page_size_options: Sequence[int] = DEFAULT_PAGE_SIZE_OPTIONS,
                 include_all_option: bool = True, search_enabled: bool = True):
        if not table_name:
            raise ConfigurationError('Table name must be set')
        self._table_name = table_name
        tokens = table_name.split()
        self._base_table = tokens[0]
        self._base_names = frozenset({tokens[0], tokens[-1]})
        self._primary_key = primary_key
        self._columns = types.MappingProxyType(dict(columns))
        self._schema = schema
        self._joins = tuple(joins)
        self._sortable = frozenset(sortable_columns)
        self._inline_editable = frozenset(inline_editable_columns)
        self._where = where or WhereGroup()
        self._bulk_enabled = bool(bulk_actions_enabled)
        self._bulk_actions = types.MappingProxyType(dict(bulk_actions or {}))
        self._action_config = action_config or ActionConfig()
        self._file_upload = file_upload or FileUploadPolicy()
        self._records_per_page = records_per_page
        self._page_size_options = tuple(page_size_options)
        self._include_all_option = include_all_option
        self._search_enabled = search_enabled

    table_name = property(lambda self: self._table_name)
    base_table = property(lambda self: self._base_table, doc="Unaliased physical table name")
    base_names = property(lambda self: self._base_names, doc="Base table name and its alias")
    primary_key = property(lambda self: self._primary_key)
    columns = property(lambda self: self._columns)
    schema = property(lambda self: self._schema)
    joins = property(lambda self: self._joins)
    sortable_columns = property(lambda self: self._sortable)
    inline_editable_columns = property(lambda self: self._inline_editable)
    where = property(lambda self: self._where)
    bulk_actions_enabled = property(lambda self: self._bulk_enabled)
    bulk_actions = property(lambda self: self._bulk_actions)
    action_config = property(lambda self: self._action_config)
    file_upload = property(lambda self: self._file_upload)
    records_per_page = property(lambda self: self._records_per_page)
    page_size_options = property(lambda self: self._page_size_options)
    include_all_option = property(lambda self: self._include_all_option)
    search_enabled = property(lambda self: self._search_enabled)

    @property
    def primary_key_column(self) -> str:
        """Primary key without any qualifier, as used against the base table."""
        return unqualified_name(self._primary_key)

    def is_inline_editable(self, field: str) -> bool:
        """True if field appears, qualified or unqualified, in the inline-edit allow-list."""
        if field in self._inline_editable:
            return True
        column = unqualified_name(field)
        return any(unqualified_name(name) == column for name in self._inline_editable)

    def find_bulk_action(self, name: str) -> Optional[BulkAction]:
        return self._bulk_actions.get(name)

    def to_client_config(self) -> Dict[str, Any]:
        """JSON-able settings for the browser table widget (no handlers)."""
        return {
            'table': self._base_table,
            'primary_key': self.primary_key_column,
            'columns': dict(self._columns),
            'sortable_columns': sorted(self._sortable),
            'inline_editable_columns': sorted(self._inline_editable),
            'per_page': self._records_per_page,
            'page_size_options': list(self._page_size_options),
            'include_all_option': self._include_all_option,
            'search_enabled': self._search_enabled,
            'bulk_actions': {
                'enabled': self._bulk_enabled,
                'actions': ({name: action.to_dict() for name, action in self._bulk_actions.items()}
                            if self._bulk_enabled else {}),
            },
            'action_config': self._action_config.to_dict(),
            'schema': self._schema.to_dict(),
        }


class DataTable:
    """
    Fluent builder for TableConfig.

    The schema is read from the database once, in build(), unless one is
    supplied explicitly with schema().
    """

    def __init__(self, db=None):
        self._db = db
        self._table_name = ''
        self._primary_key: Optional[str] = None
        self._columns: Dict[str, Any] = {}
        self._schema: Optional[SchemaDescriptor] = None
        self._joins: List[JoinSpec] = []
        self._where: List[Union[WhereCondition, WhereGroup]] = []
        self._where_operator = 'AND'
        self._sortable: List[str] = []
        self._inline_editable: List[str] = []
        self._bulk_enabled = False
        self._bulk_actions: Dict[str, BulkAction] = {
            name: BulkAction(name, **spec) for name, spec in DEFAULT_BULK_ACTIONS.items()
        }
        self._action_config = ActionConfig()
        self._file_upload = FileUploadPolicy()
        self._records_per_page = DEFAULT_RECORDS_PER_PAGE
        self._page_size_options = DEFAULT_PAGE_SIZE_OPTIONS
        self._include_all_option = True
        self._search_enabled = True

    def table(self, table_name: str) -> 'DataTable':
        """Set the table, optionally with an alias ('users u')."""
        self._table_name = sanitize_identifier(table_name, allow_alias=True)
        logger.debug(f"DataTables table set: {self._table_name}")
        return self

    def schema(self, schema: Union[SchemaDescriptor, Dict[str, Dict[str, Any]]]) -> 'DataTable':
        """Supply the schema explicitly instead of reading it from the database."""
        self._schema = schema if isinstance(schema, SchemaDescriptor) else SchemaDescriptor.from_dict(schema)
        return self

    def columns(self, columns: Dict[str, Any]) -> 'DataTable':
        """
        Set displayed columns in order.

        Values are either a label or {'label', 'type', 'options'}; type and
        options override the detected schema for that column.
        """
        self._columns = dict(columns)
        logger.debug(f"DataTables columns configured: {len(columns)}")
        return self

    def join(self, join_type: str, table: str, condition: str) -> 'DataTable':
        self._joins.append(JoinSpec(join_type, table, condition))
        logger.debug(f"DataTables JOIN added: {join_type} {table}")
        return self

    def where(self, field: str, comparator: str, value: Any) -> 'DataTable':
        """Add a scoping condition applied to every statement."""
        self._where.append(WhereCondition(field, comparator, value))
        return self

    def where_group(self, group: WhereGroup) -> 'DataTable':
        """Add a nested group of scoping conditions."""
        self._where.append(group)
        return self

    def where_operator(self, operator: str) -> 'DataTable':
        """Operator joining top-level scoping conditions (default AND)."""
        self._where_operator = operator.upper()
        return self

    def sortable(self, columns: Iterable[str]) -> 'DataTable':
        self._sortable = [sanitize_identifier(c) for c in columns]
        return self

    def inline_editable(self, columns: Iterable[str]) -> 'DataTable':
        self._inline_editable = [sanitize_identifier(c) for c in columns]
        return self

    def per_page(self, count: int) -> 'DataTable':
        self._records_per_page = max(1, int(count))
        return self

    def page_size_options(self, options: Iterable[int], include_all: bool = True) -> 'DataTable':
        self._page_size_options = tuple(int(o) for o in options)
        self._include_all_option = include_all
        return self

    def search(self, enabled: bool = True) -> 'DataTable':
        self._search_enabled = enabled
        return self

    def bulk_actions(self, enabled: bool = True, actions: Optional[Dict[str, Any]] = None) -> 'DataTable':
        """Enable bulk actions and merge custom ones over the built-in delete."""
        self._bulk_enabled = enabled
        for name, action in (actions or {}).items():
            if not isinstance(action, BulkAction):
                action = BulkAction(name, **action) if isinstance(action, dict) else BulkAction(name, handler=action)
            self._bulk_actions[name] = action
        logger.debug(f"DataTables bulk actions configured: {sorted(self._bulk_actions)}")
        return self

    def actions(self, position: str = 'end', show_edit: bool = True, show_delete: bool = True,
                groups: Sequence[Any] = ()) -> 'DataTable':
        self._action_config = ActionConfig(position, show_edit, show_delete, groups)
        return self

    def primary_key(self, column: str) -> 'DataTable':
        self._primary_key = sanitize_identifier(column)
        return self

    def file_upload(self, upload_path: str = DEFAULT_UPLOAD_PATH,
                    allowed_extensions: Optional[Iterable[str]] = None,
                    max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> 'DataTable':
        self._file_upload = FileUploadPolicy(upload_path, allowed_extensions, max_file_size)
        return self

    def build(self) -> TableConfig:
        """
        Freeze the configuration.

        Raises:
            ConfigurationError: If the table is missing or its schema cannot be loaded
        """
        if not self._table_name:
            raise ConfigurationError('Table name must be set before building')

        base_table = self._table_name.split()[0]
        schema = self._schema
        detected_pk = None
        if schema is None:
            if self._db is None:
                raise ConfigurationError('A database connection or an explicit schema is required')
            schema, detected_pk = load_schema(self._db, base_table)
        else:
            detected_pk = schema.primary_key()

        primary_key = self._primary_key or detected_pk or 'id'

        labels: Dict[str, str] = {}
        overrides: Dict[str, Dict[str, Any]] = {}
        for name, spec in self._columns.items():
            if isinstance(spec, dict):
                labels[name] = spec.get('label') or generate_label(unqualified_name(name))
                override = {k: spec[k] for k in ('type', 'options') if k in spec}
                if override:
                    overrides[unqualified_name(name)] = override
            else:
                labels[name] = str(spec)
        if overrides:
            schema = schema.with_overrides(overrides)

        if not labels:
            pk_column = unqualified_name(primary_key)
            labels = {name: generate_label(name) for name in schema if name != pk_column}

        config = TableConfig(
            self._table_name,
            primary_key,
            labels,
            schema,
            joins=self._joins,
            sortable_columns=self._sortable,
            inline_editable_columns=self._inline_editable,
            where=WhereGroup(self._where_operator, self._where),
            bulk_actions_enabled=self._bulk_enabled,
            bulk_actions=self._bulk_actions,
            action_config=self._action_config,
            file_upload=self._file_upload,
            records_per_page=self._records_per_page,
            page_size_options=self._page_size_options,
            include_all_option=self._include_all_option,
            search_enabled=self._search_enabled,
        )
        logger.debug(f"DataTables configuration built for {self._table_name} (primary key {primary_key})")
        return config
