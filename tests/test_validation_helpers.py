"""
Tests for request parameter parsing helpers.
"""
import pytest

from error_handler import ValidationError
from helpers.pagination_helpers import calculate_offset, calculate_total_pages
from helpers.validation_helpers import (
    clamp_int_param,
    parse_id_list,
    parse_json_object,
    parse_record_id,
    sanitize_action_param,
    sanitize_column_param,
)


def test_clamp_int_param():
    assert clamp_int_param({'page': '7'}, 'page', 1, 1, 100) == 7
    assert clamp_int_param({'page': '0'}, 'page', 1, 1, 100) == 1
    assert clamp_int_param({'page': '500'}, 'page', 1, 1, 100) == 100
    assert clamp_int_param({'page': 'x'}, 'page', 1, 1, 100) == 1
    assert clamp_int_param({}, 'per_page', 25, 0, 1000) == 25
    assert clamp_int_param({'per_page': ''}, 'per_page', 25, 0, 1000) == 25


def test_sanitize_column_param():
    assert sanitize_column_param('u.first_name') == 'u.first_name'
    assert sanitize_column_param('name`; --') == 'name'
    assert sanitize_column_param(None) == ''


def test_sanitize_action_param():
    assert sanitize_action_param('fetch_data') == 'fetch_data'
    assert sanitize_action_param('mark-read') == 'mark-read'
    assert sanitize_action_param("x'); DROP") == 'xDROP'


def test_parse_record_id():
    assert parse_record_id('42') == 42
    assert parse_record_id(7) == 7
    for bad in ('0', '-1', '1.5', 'abc', True):
        with pytest.raises(ValidationError):
            parse_record_id(bad)
    with pytest.raises(ValidationError, match='Record ID is required'):
        parse_record_id('  ')


def test_parse_id_list():
    assert parse_id_list('[3, "4", 3]') == [3, 4]
    assert parse_id_list([1, 2]) == [1, 2]
    with pytest.raises(ValidationError, match='No records selected'):
        parse_id_list('[]')
    with pytest.raises(ValidationError, match='No records selected'):
        parse_id_list(None)
    for bad in ('{"id": 1}', '[1, "x"]', 'nope', '[1.5]'):
        with pytest.raises(ValidationError):
            parse_id_list(bad)


def test_parse_json_object():
    assert parse_json_object('{"name": "Bob"}', 'row_data') == {'name': 'Bob'}
    assert parse_json_object('', 'row_data') == {}
    assert parse_json_object(None, 'row_data') == {}
    with pytest.raises(ValidationError):
        parse_json_object('[1, 2]', 'row_data')
    with pytest.raises(ValidationError):
        parse_json_object('{broken', 'row_data')


def test_pagination_math():
    assert calculate_total_pages(0, 25) == 0
    assert calculate_total_pages(51, 25) == 3
    assert calculate_total_pages(51, 0) == 1
    assert calculate_offset(1, 25) == 0
    assert calculate_offset(3, 25) == 50
