"""
Response formatting helper utilities.

Every DataTables endpoint answers with the same JSON envelope:
    {"success": bool, "message": str, ...operation-specific fields}
"""
from typing import Any, Dict, Optional, Tuple
from flask import jsonify, Response


def build_envelope(
    success: bool,
    message: str = '',
    extra_data: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Build the envelope dictionary without serializing it.

    Examples:
        >>> build_envelope(True, 'Record deleted successfully', {'affected_rows': 1})
        {'success': True, 'message': 'Record deleted successfully', 'affected_rows': 1}
    """
    envelope = {'success': success, 'message': message}
    if extra_data:
        envelope.update(extra_data)
    return envelope


def error_response(
    message: str,
    status_code: int = 400,
    extra_data: Optional[Dict[str, Any]] = None
) -> Tuple[Response, int]:
    """
    Create a standardized error response.

    Args:
        message: Error message to return to client
        status_code: HTTP status code (default: 400)
        extra_data: Optional additional data to include in response

    Returns:
        Tuple of (Response, status_code)

    Usage:
        return error_response("Unknown table", 404)
    """
    return jsonify(build_envelope(False, message, extra_data)), status_code


def envelope_response(payload: Dict[str, Any], status_code: int = 200) -> Tuple[Response, int]:
    """Serialize an envelope produced by the request dispatcher."""
    return jsonify(payload), status_code
