"""
Common constants used across the DataTables engine.
"""

# Representations a checkbox/boolean field accepts as "checked"
TRUE_VALUES = {'1', 'true', 'on', 'yes'}

# AJAX actions served by the request dispatcher (closed set)
ACTION_FETCH_DATA = 'fetch_data'
ACTION_FETCH_RECORD = 'fetch_record'
ACTION_ADD_RECORD = 'add_record'
ACTION_EDIT_RECORD = 'edit_record'
ACTION_DELETE_RECORD = 'delete_record'
ACTION_BULK = 'bulk_action'
ACTION_INLINE_EDIT = 'inline_edit'
ACTION_CALLBACK = 'action_callback'
ACTION_UPLOAD_FILE = 'upload_file'

ALLOWED_ACTIONS = frozenset({
    ACTION_FETCH_DATA,
    ACTION_FETCH_RECORD,
    ACTION_ADD_RECORD,
    ACTION_EDIT_RECORD,
    ACTION_DELETE_RECORD,
    ACTION_BULK,
    ACTION_INLINE_EDIT,
    ACTION_CALLBACK,
    ACTION_UPLOAD_FILE,
})

# Actions that change state and must arrive as POST
WRITE_ACTIONS = frozenset({
    ACTION_ADD_RECORD,
    ACTION_EDIT_RECORD,
    ACTION_DELETE_RECORD,
    ACTION_BULK,
    ACTION_INLINE_EDIT,
    ACTION_CALLBACK,
    ACTION_UPLOAD_FILE,
})

# Request parameters that never map onto table columns
RESERVED_PARAMS = frozenset({'action', 'csrf_token'})

# Paging
DEFAULT_RECORDS_PER_PAGE = 25
DEFAULT_PAGE_SIZE_OPTIONS = (25, 50, 100, 250)
MAX_PER_PAGE = 1000
MAX_PAGE_NUMBER = 1_000_000  # Prevent absurd offsets

# Search column value meaning "every configured column"
SEARCH_ALL_COLUMNS = 'all'

# File uploads
DEFAULT_UPLOAD_PATH = 'uploads'
DEFAULT_ALLOWED_EXTENSIONS = frozenset({'jpg', 'jpeg', 'png', 'gif', 'pdf', 'doc', 'docx'})
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB

# SQL vocabulary accepted in table configuration
JOIN_TYPES = frozenset({'INNER', 'LEFT', 'RIGHT', 'FULL'})
WHERE_COMPARATORS = frozenset({'=', '!=', '<', '>', '<=', '>=', 'LIKE', 'NOT LIKE', 'IN', 'NOT IN'})
WHERE_OPERATORS = frozenset({'AND', 'OR'})
SORT_DIRECTIONS = ('ASC', 'DESC')

# Semantic column types understood by the field validator
FIELD_TYPES = frozenset({
    'text', 'number', 'email', 'date', 'datetime', 'datetime-local', 'time',
    'boolean', 'checkbox', 'select', 'textarea', 'file',
})

# Built-in bulk action, always registered
BULK_DELETE = 'delete'
DEFAULT_BULK_ACTIONS = {
    BULK_DELETE: {
        'label': 'Delete Selected',
        'icon': 'trash',
        'confirm': 'Are you sure you want to delete the selected records?',
    }
}
