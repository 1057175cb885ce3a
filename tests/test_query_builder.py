"""
Unit tests for SQL assembly. Only the generated SQL and bound parameters are
checked here; execution is covered by the dispatcher tests.
"""
import pytest

from database.query_builder import TableQueryBuilder, quote_identifier, render_where
from error_handler import NoValidDataError, ValidationError
from table_config import DataTable, WhereCondition, WhereGroup

USER_SCHEMA = {
    'id': {'type': 'number', 'primary_key': True},
    'name': {'type': 'text', 'nullable': False},
    'email': {'type': 'email'},
    'role': {'type': 'text'},
    'tenant_id': {'type': 'number'},
}


def build(**kwargs):
    table = (DataTable()
             .table(kwargs.pop('table', 'users'))
             .schema(USER_SCHEMA)
             .columns(kwargs.pop('columns', {'name': 'Name', 'email': 'Email', 'role': 'Role'})))
    if 'sortable' in kwargs:
        table.sortable(kwargs.pop('sortable'))
    if 'primary_key' in kwargs:
        table.primary_key(kwargs.pop('primary_key'))
    for condition in kwargs.pop('where', []):
        table.where(*condition)
    if 'where_operator' in kwargs:
        table.where_operator(kwargs.pop('where_operator'))
    for join in kwargs.pop('joins', []):
        table.join(*join)
    return TableQueryBuilder(table.build())


def test_quote_identifier():
    assert quote_identifier('email') == '`email`'
    assert quote_identifier('u.email') == 'u.email'
    assert quote_identifier('users u') == 'users u'
    assert quote_identifier('we`ird') == '`we``ird`'


def test_search_across_three_columns():
    builder = build()
    sql, params = builder.build_select(search='jo', page=1, per_page=25)

    assert sql == (
        "SELECT `id` AS `id`, `name` AS `name`, `email` AS `email`, `role` AS `role` "
        "FROM `users` WHERE (`name` LIKE ? OR `email` LIKE ? OR `role` LIKE ?) LIMIT ?, ?"
    )
    assert params == ['%jo%', '%jo%', '%jo%', 0, 25]


def test_search_is_never_interpolated():
    builder = build()
    payload = "x' OR '1'='1"
    sql, params = builder.build_select(search=payload)
    assert payload not in sql
    assert params[:3] == [f'%{payload}%'] * 3


def test_search_single_column():
    sql, params = build().build_select(search='bob', search_column='email', per_page=10, page=3)
    assert "WHERE (`email` LIKE ?)" in sql
    assert params == ['%bob%', 20, 10]


def test_unknown_search_column_falls_back_to_all_columns():
    builder = build()
    assert builder.resolve_search_column('password') is None
    sql, params = builder.build_select(search='x', search_column='password')
    assert "`name` LIKE ? OR `email` LIKE ? OR `role` LIKE ?" in sql
    assert 'password' not in sql


def test_sort_only_applies_to_allow_listed_columns():
    builder = build(sortable=['name'])
    sql, _ = builder.build_select(sort_column='name', sort_direction='desc')
    assert sql.endswith("ORDER BY `name` DESC LIMIT ?, ?")

    sql, _ = builder.build_select(sort_column='email', sort_direction='DESC')
    assert 'ORDER BY' not in sql

    sql, _ = builder.build_select(sort_column='name', sort_direction='sideways')
    assert "ORDER BY `name` ASC" in sql


def test_per_page_zero_has_no_limit():
    sql, params = build().build_select(per_page=0)
    assert 'LIMIT' not in sql
    assert params == []


def test_scoping_is_and_combined_with_search():
    builder = build(where=[('tenant_id', '=', 7)])
    sql, params = builder.build_select(search='a')
    assert "WHERE `tenant_id` = ? AND (`name` LIKE ? OR `email` LIKE ? OR `role` LIKE ?)" in sql
    assert params == [7, '%a%', '%a%', '%a%', 0, 25]

    count_sql, count_params = builder.build_count(search='a')
    assert count_sql.startswith("SELECT COUNT(*) AS total FROM `users` WHERE `tenant_id` = ? AND")
    assert count_params == [7, '%a%', '%a%', '%a%']


def test_or_scoping_is_parenthesized():
    builder = build(where=[('role', '=', 'admin'), ('role', '=', 'editor')], where_operator='OR')
    sql, params = builder.build_select(search='a', per_page=0)
    assert "WHERE (`role` = ? OR `role` = ?) AND (" in sql
    assert params[:2] == ['admin', 'editor']


def test_render_where_in_and_null_handling():
    group = WhereGroup('AND', [
        WhereCondition('role', 'IN', ['admin', 'user']),
        WhereCondition('deleted_at', '=', None),
        WhereCondition('email', 'NOT IN', []),
        WhereGroup('OR', [WhereCondition('age', '>', 18), WhereCondition('age', '<', 5)]),
    ])
    sql, params = render_where(group)
    assert sql == "`role` IN (?, ?) AND `deleted_at` IS NULL AND 1 = 1 AND (`age` > ? OR `age` < ?)"
    assert params == ['admin', 'user', 18, 5]


def test_empty_in_matches_nothing():
    sql, params = render_where(WhereGroup('AND', [WhereCondition('id', 'IN', [])]))
    assert sql == '1 = 0'
    assert params == []


def test_fetch_one_is_scoped():
    sql, params = build(where=[('tenant_id', '=', 1)]).build_fetch_one(5)
    assert sql == "SELECT * FROM `users` WHERE `tenant_id` = ? AND `id` = ?"
    assert params == [1, 5]


def test_insert_drops_primary_key():
    sql, params = build().build_insert({'id': 99, 'name': 'Eve', 'email': 'eve@example.com'})
    assert sql == "INSERT INTO `users` (`name`, `email`) VALUES (?, ?)"
    assert params == ['Eve', 'eve@example.com']


def test_insert_without_fields_raises():
    with pytest.raises(NoValidDataError):
        build().build_insert({'id': 1})


def test_update_parameter_order():
    sql, params = build(where=[('tenant_id', '=', 3)]).build_update({'name': 'Eve', 'role': 'user'}, 12)
    assert sql == "UPDATE `users` SET `name` = ?, `role` = ? WHERE `tenant_id` = ? AND `id` = ?"
    assert params == ['Eve', 'user', 3, 12]


def test_update_without_fields_raises():
    with pytest.raises(NoValidDataError):
        build().build_update({}, 1)


def test_inline_update_is_single_column():
    sql, params = build().build_inline_update('name', 'Zed', 4)
    assert sql == "UPDATE `users` SET `name` = ? WHERE `id` = ?"
    assert params == ['Zed', 4]


def test_delete_and_bulk_delete():
    builder = build(where=[('tenant_id', '=', 2)])
    sql, params = builder.build_delete(8)
    assert sql == "DELETE FROM `users` WHERE `tenant_id` = ? AND `id` = ?"
    assert params == [2, 8]

    sql, params = builder.build_bulk_delete([1, 2, 3])
    assert sql == "DELETE FROM `users` WHERE `tenant_id` = ? AND `id` IN (?, ?, ?)"
    assert params == [2, 1, 2, 3]


def test_bulk_delete_requires_ids():
    with pytest.raises(ValidationError, match='No records selected'):
        build().build_bulk_delete([])


def test_aliased_table_with_join():
    builder = build(
        table='users u',
        columns={'u.name': 'Name', 't.title': 'Team', "t.title || '!' team_shout": 'Shout'},
        primary_key='u.id',
        where=[('u.tenant_id', '=', 1)],
        joins=[('LEFT', 'teams t', 't.id = u.team_id')],
    )
    sql, params = builder.build_select(search='x', per_page=0)
    assert sql.startswith(
        "SELECT u.id AS `id`, u.name AS `u.name`, t.title AS `t.title`, t.title || '!' team_shout "
        "FROM users u LEFT JOIN teams t ON t.id = u.team_id WHERE u.tenant_id = ? AND "
    )
    # Raw fragments are not searchable
    assert sql.endswith("(u.name LIKE ? OR t.title LIKE ?)")
    assert params == [1, '%x%', '%x%']

    # Base-table statements drop the alias qualifier
    sql, params = builder.build_update({'u.name': 'Eve'}, 3)
    assert sql == "UPDATE `users` SET `name` = ? WHERE `tenant_id` = ? AND `id` = ?"
    assert params == ['Eve', 1, 3]


def test_default_primary_key_is_qualified_when_joined():
    builder = build(
        table='users u',
        columns={'u.name': 'Name', 't.title': 'Team'},
        joins=[('LEFT', 'teams t', 't.id = u.team_id')],
    )
    sql, _ = builder.build_select(per_page=0)
    assert sql.startswith("SELECT u.id AS `id`, u.name AS `u.name`, t.title AS `t.title` FROM users u")

    sql, _ = build(table='users u').build_select(per_page=0)
    assert sql.startswith("SELECT `id` AS `id`, ")
