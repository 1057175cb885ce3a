import os
import secrets
from typing import Dict, Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from flask_wtf.csrf import CSRFError, CSRFProtect
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

load_dotenv()

from constants import DEFAULT_MAX_FILE_SIZE, DEFAULT_UPLOAD_PATH
from database import get_database, list_tables
from error_handler import ConfigurationError, validate_environment_variable
from logging_helper import LoggingHelper, LogType
from routes.datatables_routes import bp as datatables_bp, init_datatables_routes
from table_config import DataTable

# Get logger instance
logger = LoggingHelper.get_logger(LogType.MAIN)

MAX_UPLOAD_LIMIT = 100 * 1024 * 1024  # 100MB

# SECURITY: Headers that should never be logged in full
SENSITIVE_HEADERS = {
    'Authorization', 'Cookie', 'X-API-Key', 'X-Auth-Token',
    'X-CSRFToken', 'X-Session-Token', 'API-Key', 'Bearer'
}


def _sanitize_headers(headers: dict) -> dict:
    """Sanitize sensitive headers before logging."""
    sanitized = {}
    for key, value in headers.items():
        if key in SENSITIVE_HEADERS or key.lower() in {'authorization', 'cookie'}:
            sanitized[key] = '***REDACTED***'
        else:
            sanitized[key] = value
    return sanitized


def _get_secret_key() -> str:
    """Secret key from FLASK_SECRET_KEY, or a per-process random key."""
    env_key = os.environ.get('FLASK_SECRET_KEY')
    if env_key:
        return env_key
    logger.warning("FLASK_SECRET_KEY not set, using a per-process key (sessions will not survive restarts)")
    return secrets.token_hex(32)


def upload_settings() -> Dict[str, object]:
    """Upload directory and size limit from the environment."""
    return {
        'upload_path': validate_environment_variable('DATATABLES_UPLOAD_PATH', default=DEFAULT_UPLOAD_PATH),
        'max_file_size': validate_environment_variable(
            'DATATABLES_MAX_UPLOAD_BYTES',
            default=DEFAULT_MAX_FILE_SIZE,
            converter=int,
            validator=lambda x: 1 <= x <= MAX_UPLOAD_LIMIT,
        ),
    }


def discover_tables(db) -> Dict[str, object]:
    """
    Build a default configuration for every table in the database.

    Tables whose schema cannot be loaded are skipped with a warning.
    """
    uploads = upload_settings()
    configs = {}
    for table_name in list_tables(db):
        try:
            configs[table_name] = (
                DataTable(db)
                .table(table_name)
                .file_upload(uploads['upload_path'], max_file_size=uploads['max_file_size'])
                .build()
            )
        except ConfigurationError as e:
            logger.warning(f"Skipping table {table_name}: {e}")
    logger.info(f"Discovered {len(configs)} table(s)")
    return configs


def create_app(database=None, table_configs: Optional[Dict[str, object]] = None,
               settings: Optional[Dict[str, object]] = None) -> Flask:
    """
    Create the Flask application serving the DataTables AJAX endpoint.

    Args:
        database: Database collaborator (global connection from DATATABLES_DB_PATH by default)
        table_configs: Mapping of URL key -> TableConfig (every table in the database by default)
        settings: Extra Flask config values

    Returns:
        Configured Flask app
    """
    app = Flask(__name__)

    # ========================================================================
    # FLASK CONFIGURATION
    # ========================================================================

    app.config['SECRET_KEY'] = _get_secret_key()
    # Disable SSL/referrer checks; the token check is still enforced
    app.config['WTF_CSRF_SSL_STRICT'] = False
    # Werkzeug rejects bodies larger than the biggest allowed upload plus form overhead
    app.config['MAX_CONTENT_LENGTH'] = upload_settings()['max_file_size'] + 1024 * 1024
    if settings:
        app.config.update(settings)

    # SECURITY: Enable CSRF protection for all POST/PUT/DELETE requests
    # The widget reads its token from /datatables/<table_key>/config
    CSRFProtect(app)

    @app.errorhandler(CSRFError)
    def handle_csrf_error(e):
        """Handle CSRF validation errors with helpful message."""
        logger.warning(f"CSRF validation failed: {e.description}")
        return jsonify({'success': False, 'message': e.description}), 400

    # ========================================================================
    # REQUEST/RESPONSE MIDDLEWARE
    # ========================================================================

    @app.before_request
    def log_request_info():
        """Log all incoming requests with sanitized headers."""
        logger.debug(f"INCOMING REQUEST: {request.method} {request.path}")
        logger.debug(f"  Remote addr: {request.remote_addr}")
        logger.debug(f"  Query string: {request.query_string.decode('utf-8')}")
        logger.debug(f"  Headers: {_sanitize_headers(dict(request.headers))}")

    @app.after_request
    def log_response_info(response):
        """Log all outgoing responses and add security headers."""
        logger.debug(f"OUTGOING RESPONSE: {request.method} {request.path} -> {response.status_code}")
        if response.content_type and 'json' in response.content_type:
            logger.debug(f"  JSON Body: {response.get_data(as_text=True)[:500]}")  # First 500 chars

        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'SAMEORIGIN'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        # AJAX responses must always be fresh
        response.headers['Cache-Control'] = 'no-cache, no-store, must-revalidate'
        return response

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """JSON envelope for HTTP errors (404, 405, 413, ...)."""
        logger.warning(f"HTTP {e.code} on {request.path} from {request.remote_addr}")
        return jsonify({'success': False, 'message': e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_exception(e):
        """Catch-all error handler; never exposes details to the client."""
        LoggingHelper.log_error_with_trace(f"Unhandled exception on {request.path}", e)
        return jsonify({'success': False, 'message': 'Internal server error'}), 500

    # ========================================================================
    # DATABASE AND TABLES
    # ========================================================================

    db = database if database is not None else get_database()
    if table_configs is None:
        table_configs = discover_tables(db)

    # ========================================================================
    # BLUEPRINT REGISTRATION
    # ========================================================================

    init_datatables_routes(db, table_configs)
    app.register_blueprint(datatables_bp)

    # Configure Flask to work behind a reverse proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    logger.info("DataTables application initialized and ready")
    return app


# Only run the development server if executed directly (not via WSGI)
if __name__ == '__main__':
    # Bind to localhost by default for security
    host = os.getenv('HOST', '127.0.0.1')
    port = validate_environment_variable('PORT', default=5000, converter=int,
                                         validator=lambda x: 1 <= x <= 65535)

    if host == '0.0.0.0':
        logger.warning("Binding to 0.0.0.0 exposes the API to the network. Use 127.0.0.1 unless behind a proxy.")

    try:
        application = create_app()
    except Exception as e:
        LoggingHelper.log_error_with_trace("CRITICAL: Failed to initialize application", e)
        raise SystemExit(1)

    logger.info(f"Starting Flask development server on {host}:{port}")
    logger.warning("Using Flask development server. For production, use a WSGI server like Gunicorn.")
    application.run(host=host, port=port, debug=False, threaded=True)
