"""
Tests for the fluent DataTable builder and the frozen TableConfig.
"""
import pytest

from error_handler import ConfigurationError
from table_config import ActionConfig, BulkAction, DataTable, RowAction, sanitize_identifier


def test_defaults(db):
    config = DataTable(db).table('users').build()

    assert config.primary_key == 'id'
    assert config.records_per_page == 25
    assert config.page_size_options == (25, 50, 100, 250)
    assert config.include_all_option is True
    assert config.search_enabled is True
    assert config.bulk_actions_enabled is False
    assert 'delete' in config.bulk_actions
    assert config.bulk_actions['delete'].label == 'Delete Selected'
    assert config.file_upload.upload_path == 'uploads'
    assert config.file_upload.max_file_size == 10 * 1024 * 1024


def test_columns_default_to_every_non_key_column_with_labels(db):
    config = DataTable(db).table('users').build()
    assert 'id' not in config.columns
    assert config.columns['tenant_id'] == 'Tenant Id'
    assert config.columns['name'] == 'Name'


def test_column_overrides_change_schema(users_table):
    assert users_table.schema['email'].semantic_type == 'email'
    assert users_table.schema['role'].semantic_type == 'select'
    assert dict(users_table.schema['role'].options) == {'admin': 'Admin', 'user': 'User', 'editor': 'Editor'}
    assert users_table.columns['email'] == 'Email'


def test_config_is_read_only(users_table):
    with pytest.raises(TypeError):
        users_table.columns['password'] = 'Password'
    with pytest.raises(AttributeError):
        users_table.table_name = 'admins'


def test_aliased_table_and_qualified_primary_key(db):
    config = DataTable(db).table('users u').primary_key('u.id').inline_editable(['u.name']).build()
    assert config.base_table == 'users'
    assert config.base_names == frozenset({'users', 'u'})
    assert config.primary_key_column == 'id'
    assert config.is_inline_editable('u.name')
    assert config.is_inline_editable('name')
    assert not config.is_inline_editable('email')


def test_identifiers_are_sanitized():
    assert sanitize_identifier('users; DROP TABLE x') == 'usersDROPTABLEx'
    assert sanitize_identifier('users  u', allow_alias=True) == 'users u'
    assert sanitize_identifier('name`') == 'name'


def test_invalid_configuration_is_rejected(db):
    with pytest.raises(ConfigurationError):
        DataTable(db).join('SIDEWAYS', 'teams t', 't.id = users.team_id')
    with pytest.raises(ConfigurationError):
        DataTable(db).where('age', 'BETWEEN', 3)
    with pytest.raises(ConfigurationError):
        DataTable(db).table('users').where_operator('XOR').build()
    with pytest.raises(ConfigurationError):
        DataTable().build()
    with pytest.raises(ConfigurationError):
        DataTable().table('users').build()
    with pytest.raises(ConfigurationError):
        ActionConfig(position='middle')


def test_custom_bulk_actions_merge_with_builtin_delete(db):
    config = (DataTable(db)
              .table('users')
              .bulk_actions(True, {'activate': lambda ids, db, table: len(ids)})
              .build())
    assert set(config.bulk_actions) == {'delete', 'activate'}
    assert config.find_bulk_action('activate').label == 'Activate'
    assert config.find_bulk_action('delete').is_builtin_delete
    assert not config.find_bulk_action('activate').is_builtin_delete
    assert config.find_bulk_action('promote') is None


def test_row_actions_are_found_in_groups(db):
    config = (DataTable(db)
              .table('users')
              .actions(groups=[['edit', 'delete'], {'reset': RowAction('reset', lambda *args: True, icon='refresh')}])
              .build())
    assert config.action_config.find_row_action('reset').icon == 'refresh'
    assert config.action_config.find_row_action('edit') is None


def test_non_callable_handler_is_rejected():
    with pytest.raises(ConfigurationError):
        BulkAction('activate', handler='not callable')


def test_client_config_exports_no_handlers(db):
    config = (DataTable(db)
              .table('users')
              .columns({'name': 'Name', 'email': 'Email'})
              .sortable(['name'])
              .bulk_actions(True, {'activate': BulkAction('activate', 'Activate', 'Sure?', lambda *a: True)})
              .actions(groups=[{'reset': RowAction('reset', lambda *a: True)}])
              .build())
    client = config.to_client_config()

    assert client['table'] == 'users'
    assert client['primary_key'] == 'id'
    assert client['columns'] == {'name': 'Name', 'email': 'Email'}
    assert client['sortable_columns'] == ['name']
    assert client['bulk_actions']['enabled'] is True
    assert client['bulk_actions']['actions']['activate'] == {'label': 'Activate', 'confirm': 'Sure?', 'icon': None}
    assert client['action_config']['groups'] == [
        {'reset': {'title': 'Reset', 'icon': 'link', 'class': 'btn-custom', 'callback': True}}
    ]
    assert client['schema']['name']['nullable'] is False
