"""
Helper utilities for the DataTables engine.
Centralizes common patterns to reduce code duplication.
"""

# Export all helpers for easy importing
from .field_validator import FieldValidator, normalize_boolean, coerce_number
from .pagination_helpers import calculate_total_pages, calculate_offset
from .response_helpers import build_envelope, error_response, envelope_response
from .upload_helpers import LocalFileStore, validate_upload
from .validation_helpers import (
    clamp_int_param,
    sanitize_column_param,
    sanitize_action_param,
    parse_record_id,
    parse_id_list,
    parse_json_object,
)

__all__ = [
    # Field validation
    'FieldValidator',
    'normalize_boolean',
    'coerce_number',
    # Pagination helpers
    'calculate_total_pages',
    'calculate_offset',
    # Response helpers
    'build_envelope',
    'error_response',
    'envelope_response',
    # Upload helpers
    'LocalFileStore',
    'validate_upload',
    # Validation helpers
    'clamp_int_param',
    'sanitize_column_param',
    'sanitize_action_param',
    'parse_record_id',
    'parse_id_list',
    'parse_json_object',
]
