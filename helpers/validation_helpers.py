"""
Parameter validation helper utilities.

Turns raw request parameters into safe values for the request dispatcher.
Paging parameters are clamped; identifiers are reduced to a safe alphabet;
ids that must identify a row raise ValidationError when malformed.
"""
import json
import re
from typing import Any, Dict, List, Mapping

from error_handler import ValidationError

# Pre-compiled regex patterns for performance
_COLUMN_STRIP_PATTERN = re.compile(r'[^A-Za-z0-9_.]')
_ACTION_STRIP_PATTERN = re.compile(r'[^A-Za-z0-9_\-]')
_POSITIVE_INT_PATTERN = re.compile(r'^\+?\d+$')


def clamp_int_param(
    request_args: Mapping[str, Any],
    param_name: str,
    default: int,
    min_value: int,
    max_value: int
) -> int:
    """
    Read an integer parameter and clamp it into [min_value, max_value].

    Non-numeric input falls back to the default before clamping.

    Examples:
        >>> clamp_int_param({'page': '0'}, 'page', 1, 1, 1000000)
        1
        >>> clamp_int_param({'per_page': '5000'}, 'per_page', 25, 0, 1000)
        1000
        >>> clamp_int_param({'per_page': 'abc'}, 'per_page', 25, 0, 1000)
        25
    """
    raw_value = request_args.get(param_name)
    try:
        value = int(str(raw_value).strip()) if raw_value not in (None, '') else default
    except (ValueError, TypeError):
        value = default
    return max(min_value, min(value, max_value))


def sanitize_column_param(value: Any) -> str:
    """
    Reduce a column name from the request to [A-Za-z0-9_.].

    Examples:
        >>> sanitize_column_param("name; DROP TABLE users")
        'nameDROPTABLEusers'
    """
    if value is None:
        return ''
    return _COLUMN_STRIP_PATTERN.sub('', str(value))


def sanitize_action_param(value: Any) -> str:
    """Reduce an action name to [A-Za-z0-9_-]."""
    if value is None:
        return ''
    return _ACTION_STRIP_PATTERN.sub('', str(value).strip())


def parse_record_id(value: Any, param_name: str = 'id') -> int:
    """
    Parse a row id that must be a positive integer.

    Raises:
        ValidationError: If the value is missing, not an integer, or < 1
    """
    if isinstance(value, bool):
        raise ValidationError(f'Invalid {param_name}: must be a positive integer', param_name)
    if isinstance(value, int):
        number = value
    else:
        text = str(value).strip() if value is not None else ''
        if not text:
            raise ValidationError('Record ID is required', param_name)
        if not _POSITIVE_INT_PATTERN.match(text):
            raise ValidationError(f'Invalid {param_name}: must be a positive integer', param_name)
        number = int(text)
    if number < 1:
        raise ValidationError(f'Invalid {param_name}: must be a positive integer', param_name)
    return number


def parse_id_list(raw_value: Any, param_name: str = 'selected_ids') -> List[int]:
    """
    Parse a JSON array of row ids.

    Every element must be a positive integer; duplicates are dropped while
    keeping the first occurrence order.

    Raises:
        ValidationError: If the payload is not a non-empty array of positive integers
    """
    if isinstance(raw_value, (list, tuple)):
        items = list(raw_value)
    else:
        try:
            items = json.loads(raw_value) if raw_value not in (None, '') else []
        except (ValueError, TypeError):
            raise ValidationError(f'Invalid {param_name}: must be a JSON array', param_name)
        if not isinstance(items, list):
            raise ValidationError(f'Invalid {param_name}: must be a JSON array', param_name)

    if not items:
        raise ValidationError('No records selected', param_name)

    ids: List[int] = []
    for item in items:
        record_id = parse_record_id(item, param_name)
        if record_id not in ids:
            ids.append(record_id)
    return ids


def parse_json_object(raw_value: Any, param_name: str) -> Dict[str, Any]:
    """
    Parse an optional JSON object parameter ('' or missing -> {}).

    Raises:
        ValidationError: If the value is not a JSON object
    """
    if isinstance(raw_value, dict):
        return raw_value
    if raw_value in (None, ''):
        return {}
    try:
        value = json.loads(raw_value)
    except (ValueError, TypeError):
        raise ValidationError(f'Invalid {param_name}: must be a JSON object', param_name)
    if not isinstance(value, dict):
        raise ValidationError(f'Invalid {param_name}: must be a JSON object', param_name)
    return value
