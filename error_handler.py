"""
Standardized error handling utilities for consistent error management.

Every error the request dispatcher can report derives from DataTablesError and
carries the HTTP status the JSON envelope is sent with.
"""

import os
from typing import Optional, Any, Callable
from logging_helper import LoggingHelper, LogType

logger = LoggingHelper.get_logger(LogType.MAIN)


class DataTablesError(Exception):
    """Base exception for all DataTables errors."""
    status_code = 400


class InvalidActionError(DataTablesError):
    """Unknown or missing AJAX action; raised before any side effect."""
    pass


class ValidationError(DataTablesError):
    """Request or field validation failure; the whole write is rejected."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class NotNullableError(ValidationError):
    """Empty value submitted for a NOT NULL column."""
    pass


class FieldTypeError(ValidationError):
    """Value cannot be coerced to the column's type."""
    pass


class FormatError(ValidationError):
    """Value does not match the column's format (email, date, options)."""
    pass


class NoValidDataError(ValidationError):
    """Nothing left to write after validation."""
    pass


class NotFoundError(DataTablesError):
    """No row matched the primary key inside the configured scope."""
    status_code = 404


class ConfigurationError(DataTablesError):
    """Operation not permitted by the table configuration."""
    pass


class UploadError(DataTablesError):
    """Upload rejected (size/extension) or could not be stored."""
    pass


def validate_environment_variable(
    var_name: str,
    default: Any,
    validator: Optional[Callable[[Any], bool]] = None,
    converter: Optional[Callable[[str], Any]] = None
) -> Any:
    """
    Safely get and validate an environment variable.

    Args:
        var_name: Name of the environment variable
        default: Default value if not set or invalid
        validator: Optional validation function
        converter: Optional conversion function (e.g., int, float)

    Returns:
        The validated and converted environment variable value
    """
    raw_value = os.getenv(var_name)

    if raw_value is None:
        logger.debug(f"Environment variable {var_name} not set, using default: {default}")
        return default

    if converter:
        try:
            value = converter(raw_value)
        except (ValueError, TypeError) as exc:
            logger.warning(
                f"Invalid {var_name}='{raw_value}': {exc}. Using default: {default}"
            )
            return default
    else:
        value = raw_value

    if validator and not validator(value):
        logger.warning(
            f"Invalid {var_name}='{value}' failed validation. Using default: {default}"
        )
        return default

    logger.debug(f"Using {var_name}={value}")
    return value
