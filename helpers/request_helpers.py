"""
Request helpers for handling HTTP request data safely.
"""
from typing import Any, Dict

from flask import request


def get_real_ip() -> str:
    """
    Get real client IP address, accounting for reverse proxies.

    X-Forwarded-For is only trustworthy when the proxy in front of the app
    strips client-provided values; use it for logging, never for access control.

    Returns:
        Real client IP address as string
    """
    # X-Forwarded-For format: "client, proxy1, proxy2"
    forwarded_for = request.headers.get('X-Forwarded-For')

    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    return request.remote_addr or ''


def collect_request_params() -> Dict[str, Any]:
    """
    Merge query string and form fields into one flat dictionary.

    Form values win over query string values with the same name; for repeated
    names the first value is used.
    """
    params: Dict[str, Any] = {}
    for key in request.args:
        params[key] = request.args.get(key)
    for key in request.form:
        params[key] = request.form.get(key)
    return params


def collect_uploaded_files() -> Dict[str, Any]:
    """Uploaded files keyed by form field name, skipping empty file inputs."""
    return {
        name: storage
        for name, storage in request.files.items()
        if storage is not None and storage.filename
    }
