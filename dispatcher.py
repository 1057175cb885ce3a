"""
AJAX request dispatcher for DataTables.

Maps an action name from the closed action set onto one operation, turns the
untrusted request parameters into validated values, runs the statements built
by TableQueryBuilder against the database collaborator and returns the JSON
envelope. Nothing escapes handle() except a DispatchResult.
"""
import sqlite3
from typing import Any, Dict, List, Mapping, Optional, Tuple

from constants import (
    ACTION_ADD_RECORD,
    ACTION_BULK,
    ACTION_CALLBACK,
    ACTION_DELETE_RECORD,
    ACTION_EDIT_RECORD,
    ACTION_FETCH_DATA,
    ACTION_FETCH_RECORD,
    ACTION_INLINE_EDIT,
    ACTION_UPLOAD_FILE,
    ALLOWED_ACTIONS,
    MAX_PAGE_NUMBER,
    MAX_PER_PAGE,
    RESERVED_PARAMS,
    SEARCH_ALL_COLUMNS,
)
from database.query_builder import TableQueryBuilder
from error_handler import (
    ConfigurationError,
    DataTablesError,
    InvalidActionError,
    NoValidDataError,
    NotFoundError,
    ValidationError,
)
from helpers.field_validator import FieldValidator
from helpers.pagination_helpers import calculate_total_pages
from helpers.response_helpers import build_envelope
from helpers.upload_helpers import LocalFileStore, validate_upload
from helpers.validation_helpers import (
    clamp_int_param,
    parse_id_list,
    parse_json_object,
    parse_record_id,
    sanitize_action_param,
    sanitize_column_param,
)
from logging_helper import LoggingHelper, LogType
from schema import unqualified_name

logger = LoggingHelper.get_logger(LogType.MAIN)
_sanitize = LoggingHelper.sanitize_value


class DispatchResult:
    """JSON envelope plus the HTTP status it is sent with."""

    def __init__(self, payload: Dict[str, Any], status_code: int = 200):
        self.payload = payload
        self.status_code = status_code

    @property
    def success(self) -> bool:
        return bool(self.payload.get('success'))

    def __repr__(self) -> str:
        return f"DispatchResult({self.status_code}, {self.payload!r})"


class RequestDispatcher:
    """
    Per-request handler for one configured table; create one per request.

    Args:
        config: TableConfig of the table
        db: Database collaborator exposing query(sql).bind(params).execute()/fetch()/single()
        validator: FieldValidator (default instance when omitted)
        file_store: Storage primitive for uploads (LocalFileStore when omitted)

    Usage:
        dispatcher = RequestDispatcher(config, db)
        result = dispatcher.handle('fetch_data', {'page': '2', 'search': 'foo'})
        return jsonify(result.payload), result.status_code
    """

    def __init__(self, config, db, validator: Optional[FieldValidator] = None, file_store=None):
        self._config = config
        self._db = db
        self._builder = TableQueryBuilder(config)
        self._validator = validator or FieldValidator()
        self._file_store = file_store or LocalFileStore()
        self._client_ip = 'unknown'
        self._operations = {
            ACTION_FETCH_DATA: self._fetch_data,
            ACTION_FETCH_RECORD: self._fetch_record,
            ACTION_ADD_RECORD: self._add_record,
            ACTION_EDIT_RECORD: self._edit_record,
            ACTION_DELETE_RECORD: self._delete_record,
            ACTION_BULK: self._bulk_action,
            ACTION_INLINE_EDIT: self._inline_edit,
            ACTION_CALLBACK: self._action_callback,
            ACTION_UPLOAD_FILE: self._upload_file,
        }

    @property
    def config(self):
        return self._config

    def handle(self, action: Any, params: Optional[Mapping[str, Any]] = None,
               files: Optional[Mapping[str, Any]] = None, client_ip: str = '') -> DispatchResult:
        """
        Run one AJAX action.

        Args:
            action: Action name from the request
            params: Merged query string / form parameters
            files: Uploaded files keyed by form field name
            client_ip: Remote address, only used in log lines

        Returns:
            DispatchResult; status 200 on success, the error's status otherwise
        """
        params = params or {}
        files = files or {}
        self._client_ip = client_ip or 'unknown'
        action_name = sanitize_action_param(action)
        try:
            if not action_name:
                raise InvalidActionError('No action specified')
            if action_name not in ALLOWED_ACTIONS:
                raise InvalidActionError(f"Unknown action: {action_name}")

            logger.debug(f"DataTables {self._config.base_table}: handling {action_name}")
            payload = self._operations[action_name](params, files)
            return DispatchResult(payload, 200 if payload.get('success') else 400)

        except DataTablesError as e:
            logger.warning(
                f"DataTables {self._config.base_table} {_sanitize(action_name)} rejected: "
                f"{type(e).__name__}: {_sanitize(str(e), 200)}"
            )
            return DispatchResult(build_envelope(False, str(e)), e.status_code)
        except sqlite3.IntegrityError as e:
            logger.warning(f"DataTables {self._config.base_table} {action_name} constraint violation: {e}")
            return DispatchResult(build_envelope(False, 'The record violates a database constraint'), 400)
        except Exception as e:
            LoggingHelper.log_error_with_trace(
                f"DataTables {self._config.base_table} {action_name} failed", e
            )
            return DispatchResult(build_envelope(False, 'An error occurred processing your request'), 500)

    # =========================================================================
    # Read operations
    # =========================================================================

    def _fetch_data(self, params: Mapping[str, Any], files) -> Dict[str, Any]:
        page = clamp_int_param(params, 'page', 1, 1, MAX_PAGE_NUMBER)
        per_page = clamp_int_param(params, 'per_page', self._config.records_per_page, 0, MAX_PER_PAGE)

        search = str(params.get('search') or '').strip() if self._config.search_enabled else ''
        search_column = sanitize_column_param(params.get('search_column'))
        sort_column = sanitize_column_param(params.get('sort_column'))
        sort_direction = 'DESC' if str(params.get('sort_direction') or '').strip().upper() == 'DESC' else 'ASC'

        if sort_column and not self._builder.is_sortable(sort_column):
            logger.warning(f"Ignoring non-sortable column {_sanitize(sort_column)} from {self._client_ip}")
            sort_column = ''

        if (search and search_column and search_column != SEARCH_ALL_COLUMNS
                and self._builder.resolve_search_column(search_column) is None):
            logger.warning(
                f"Unknown search column {_sanitize(search_column)} from {self._client_ip}, searching all columns"
            )

        sql, query_params = self._builder.build_select(
            search, search_column, sort_column, sort_direction, page, per_page
        )
        count_sql, count_params = self._builder.build_count(search, search_column)

        rows = self._db.query(sql).bind(query_params).fetch()
        count_row = self._db.query(count_sql).bind(count_params).single()
        total = int(count_row['total']) if count_row else 0

        return build_envelope(True, 'Data retrieved successfully', {
            'data': rows or [],
            'total': total,
            'page': page,
            'per_page': per_page,
            'total_pages': calculate_total_pages(total, per_page),
        })

    def _fetch_record(self, params: Mapping[str, Any], files) -> Dict[str, Any]:
        record_id = parse_record_id(params.get('id'))
        sql, query_params = self._builder.build_fetch_one(record_id)
        row = self._db.query(sql).bind(query_params).single()
        if not row:
            raise NotFoundError('Record not found')
        return build_envelope(True, 'Record retrieved successfully', {'data': row})

    # =========================================================================
    # Write operations
    # =========================================================================

    def _collect_fields(self, params: Mapping[str, Any],
                        files: Mapping[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
        """
        Validate every submitted field that maps onto a schema column.

        Fields absent from the schema, the primary key and reserved parameters
        are skipped. Uploaded files are validated after the plain fields and
        stored only once everything passed, then merged in as file paths.

        Returns:
            Tuple of (fields, stored file paths)
        """
        schema = self._config.schema
        pk_column = self._config.primary_key_column

        uploads = {}
        for name, upload in files.items():
            column = unqualified_name(sanitize_column_param(name))
            if column and column != pk_column and column in schema:
                uploads[column] = upload

        fields: Dict[str, Any] = {}
        for name, raw_value in params.items():
            if name in RESERVED_PARAMS:
                continue
            clean_name = sanitize_column_param(name)
            if clean_name != name:
                logger.warning(f"Skipping malformed field name: {_sanitize(name)}")
                continue
            column = unqualified_name(clean_name)
            if column == pk_column or column not in schema or column in uploads:
                continue
            fields[column] = self._validator.validate(schema[column], raw_value)

        extensions = {column: validate_upload(upload, self._config.file_upload)
                      for column, upload in uploads.items()}
        stored: List[str] = []
        try:
            for column, upload in uploads.items():
                file_path, _ = self._file_store.store(
                    upload, self._config.file_upload.upload_path, extensions[column]
                )
                stored.append(file_path)
                fields[column] = file_path
        except Exception:
            self._discard_uploads(stored)
            raise

        return fields, stored

    def _discard_uploads(self, stored: List[str]) -> None:
        for file_path in stored:
            self._file_store.discard(file_path)

    def _add_record(self, params: Mapping[str, Any], files: Mapping[str, Any]) -> Dict[str, Any]:
        fields, stored = self._collect_fields(params, files)
        if not fields:
            raise NoValidDataError('No valid data to insert')

        sql, query_params = self._builder.build_insert(fields)
        statement = self._db.query(sql).bind(query_params)
        try:
            statement.execute()
        except Exception:
            self._discard_uploads(stored)
            raise
        new_id = statement.last_insert_id

        LoggingHelper.log_user_action('Added record', f"{self._config.base_table} #{new_id}")
        return build_envelope(True, 'Record added successfully', {'id': new_id})

    def _edit_record(self, params: Mapping[str, Any], files: Mapping[str, Any]) -> Dict[str, Any]:
        pk_column = self._config.primary_key_column
        record_id = parse_record_id(params.get(pk_column), pk_column)

        # Row must exist inside the scope before any upload is stored
        sql, query_params = self._builder.build_fetch_one(record_id)
        if self._db.query(sql).bind(query_params).single() is None:
            raise NotFoundError('Record not found')

        fields, stored = self._collect_fields(params, files)
        if not fields:
            raise NoValidDataError('No valid data to update')

        sql, query_params = self._builder.build_update(fields, record_id)
        try:
            affected = self._db.query(sql).bind(query_params).execute()
            if affected == 0:
                raise NotFoundError('Record not found')
        except Exception:
            self._discard_uploads(stored)
            raise

        LoggingHelper.log_user_action(
            'Updated record', f"{self._config.base_table} #{record_id} ({', '.join(sorted(fields))})"
        )
        return build_envelope(True, 'Record updated successfully')

    def _delete_record(self, params: Mapping[str, Any], files) -> Dict[str, Any]:
        record_id = parse_record_id(params.get('id'))

        sql, query_params = self._builder.build_delete(record_id)
        affected = self._db.query(sql).bind(query_params).execute()
        if affected == 0:
            raise NotFoundError('Record not found')

        LoggingHelper.log_user_action('Deleted record', f"{self._config.base_table} #{record_id}")
        return build_envelope(True, 'Record deleted successfully', {'affected_rows': affected})

    def _bulk_action(self, params: Mapping[str, Any], files) -> Dict[str, Any]:
        action_name = sanitize_action_param(params.get('bulk_action'))
        if not action_name:
            raise ValidationError('Bulk action is required', 'bulk_action')
        ids = parse_id_list(params.get('selected_ids'))

        if not self._config.bulk_actions_enabled:
            raise ConfigurationError('Bulk actions are not enabled')
        action = self._config.find_bulk_action(action_name)
        if action is None:
            raise ConfigurationError(f"Unknown bulk action: {action_name}")

        if action.is_builtin_delete:
            sql, query_params = self._builder.build_bulk_delete(ids)
            affected = self._db.query(sql).bind(query_params).execute()
            LoggingHelper.log_user_action(
                'Bulk deleted records', f"{self._config.base_table} {affected}/{len(ids)}"
            )
            return build_envelope(True, 'Selected records deleted successfully', {'affected_count': affected})

        if action.handler is None:
            raise ConfigurationError(f"Bulk action '{action_name}' has no handler")

        # Not wrapped in a transaction: partial failures are whatever the handler leaves behind
        result = action.handler.execute(list(ids), self._db, self._config.base_table)
        if isinstance(result, int) and not isinstance(result, bool):
            success, affected = True, result
        else:
            success, affected = bool(result), (len(ids) if result else 0)

        LoggingHelper.log_user_action(
            f"Bulk action {action_name}",
            f"{self._config.base_table} ids={ids} -> {'ok' if success else 'failed'}"
        )
        message = action.success_message if success else action.error_message
        return build_envelope(success, message, {'affected_count': affected})

    def _inline_edit(self, params: Mapping[str, Any], files) -> Dict[str, Any]:
        raw_id = params.get('id')
        field = sanitize_column_param(params.get('field'))
        if raw_id in (None, '') or not field:
            raise ValidationError('Record ID and field are required')
        record_id = parse_record_id(raw_id)

        if not self._config.is_inline_editable(field):
            logger.warning(f"Inline edit rejected for non-editable field {_sanitize(field)} from {self._client_ip}")
            raise ConfigurationError('Field is not inline editable')

        column = unqualified_name(field)
        value = params.get('value')
        if column in self._config.schema:
            value = self._validator.validate(self._config.schema[column], value)

        sql, query_params = self._builder.build_inline_update(column, value, record_id)
        affected = self._db.query(sql).bind(query_params).execute()
        if affected == 0:
            raise NotFoundError('Record not found')

        LoggingHelper.log_user_action('Inline edit', f"{self._config.base_table} #{record_id} {column}")
        return build_envelope(True, 'Field updated successfully')

    def _action_callback(self, params: Mapping[str, Any], files) -> Dict[str, Any]:
        action_name = sanitize_action_param(params.get('action_name'))
        raw_row_id = params.get('row_id')
        if not action_name or raw_row_id in (None, ''):
            raise ValidationError('Action name and row ID are required')
        row_id = parse_record_id(raw_row_id, 'row_id')
        row_data = parse_json_object(params.get('row_data'), 'row_data')

        action = self._config.action_config.find_row_action(action_name)
        if action is None:
            raise ConfigurationError(f"Unknown action: {action_name}")

        result = action.handler.execute(row_id, row_data, self._db, self._config.base_table)
        success = bool(result)

        LoggingHelper.log_user_action(
            f"Row action {action_name}",
            f"{self._config.base_table} #{row_id} -> {'ok' if success else 'failed'}"
        )
        return build_envelope(success, action.success_message if success else action.error_message)

    def _upload_file(self, params, files: Mapping[str, Any]) -> Dict[str, Any]:
        upload = files.get('file')
        policy = self._config.file_upload
        extension = validate_upload(upload, policy)
        file_path, file_name = self._file_store.store(upload, policy.upload_path, extension)

        LoggingHelper.log_user_action('Uploaded file', file_name)
        return build_envelope(True, 'File uploaded successfully', {
            'file_path': file_path,
            'file_name': file_name,
        })
