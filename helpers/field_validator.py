"""
Schema-driven field validation.

FieldValidator.validate() takes a column's schema entry and the raw value a
client submitted, and returns the value to store or raises a ValidationError
subclass. It never touches the database.
"""
import html
import re
from datetime import datetime
from typing import Any, Optional, Union

from constants import TRUE_VALUES
from error_handler import FieldTypeError, FormatError, NotNullableError
from schema import ColumnSchema

# Pre-compiled regex patterns for performance
_INTEGER_PATTERN = re.compile(r'^[+-]?\d+$')
_NUMBER_PATTERN = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$')
_EMAIL_PATTERN = re.compile(
    r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$"
)

DATE_FORMAT = '%Y-%m-%d'
DATETIME_FORMAT = '%Y-%m-%dT%H:%M'
TIME_FORMAT = '%H:%M'


def is_empty(value: Any) -> bool:
    """None, or a string that is blank once trimmed."""
    if value is None:
        return True
    return isinstance(value, str) and value.strip() == ''


def normalize_boolean(value: Any) -> int:
    """
    Normalize any truthy representation to 1, everything else to 0.

    Examples:
        >>> normalize_boolean('true')
        1
        >>> normalize_boolean('0')
        0
    """
    if isinstance(value, bool):
        return 1 if value else 0
    if isinstance(value, (int, float)):
        return 1 if value == 1 else 0
    return 1 if str(value).strip().lower() in TRUE_VALUES else 0


def coerce_number(value: Any, field: Optional[str] = None) -> Union[int, float]:
    """Coerce to int or float, keeping the apparent representation ('5' -> 5, '5.0' -> 5.0)."""
    if isinstance(value, bool):
        raise FieldTypeError(f"{field or 'Value'} must be a number", field)
    if isinstance(value, (int, float)):
        return value
    text = str(value).strip()
    if _INTEGER_PATTERN.match(text):
        return int(text)
    if _NUMBER_PATTERN.match(text):
        return float(text)
    raise FieldTypeError(f"{field or 'Value'} must be a number", field)


def _parse_exact(value: Any, fmt: str, field: str, label: str) -> str:
    text = str(value).strip()
    try:
        parsed = datetime.strptime(text, fmt)
    except ValueError:
        raise FormatError(f"{field} must be a valid {label}", field)
    # strptime tolerates missing zero padding; require an exact round-trip
    if parsed.strftime(fmt) != text:
        raise FormatError(f"{field} must be a valid {label}", field)
    return text


class FieldValidator:
    """
    Validates and coerces submitted values against column schema entries.

    Usage:
        validator = FieldValidator()
        value = validator.validate(config.schema['email'], request_value)
    """

    def validate(self, column: ColumnSchema, raw_value: Any) -> Any:
        """
        Validate one value.

        Args:
            column: Schema entry of the target column
            raw_value: Value as submitted by the client

        Returns:
            The coerced value to bind into SQL (None for an allowed empty value)

        Raises:
            NotNullableError: Empty value for a NOT NULL column
            FieldTypeError: Non-numeric value for a number column
            FormatError: Bad email/date/datetime/time, or value outside select options
        """
        field = column.name

        if is_empty(raw_value):
            if column.nullable:
                return None
            raise NotNullableError(f"{field} cannot be empty", field)

        semantic_type = column.semantic_type

        if semantic_type == 'number':
            return coerce_number(raw_value, field)

        if semantic_type == 'email':
            text = str(raw_value).strip()
            if not _EMAIL_PATTERN.match(text):
                raise FormatError(f"{field} must be a valid email address", field)
            return text

        if semantic_type == 'date':
            return _parse_exact(raw_value, DATE_FORMAT, field, 'date (YYYY-MM-DD)')

        if semantic_type in ('datetime', 'datetime-local'):
            return _parse_exact(raw_value, DATETIME_FORMAT, field, 'date and time (YYYY-MM-DDTHH:MM)')

        if semantic_type == 'time':
            return _parse_exact(raw_value, TIME_FORMAT, field, 'time (HH:MM)')

        if semantic_type in ('boolean', 'checkbox'):
            return normalize_boolean(raw_value)

        text = str(raw_value).strip()
        if semantic_type == 'select' and column.options is not None:
            if text not in column.options:
                raise FormatError(f"{field} must be one of the available options", field)
            # Options are configuration, stored as given
            return text

        # Escape, don't reject: storage is still parameterized
        return html.escape(text, quote=True)
