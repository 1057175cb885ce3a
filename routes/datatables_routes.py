"""
DataTables AJAX routes blueprint.
Serves every registered table through:
    /datatables/<table_key>/config  - widget settings and the CSRF token for POSTs
    /datatables/<table_key>/ajax    - the AJAX actions
"""
from typing import Dict

from flask import Blueprint, Response, request
from flask_wtf.csrf import generate_csrf

from constants import WRITE_ACTIONS
from dispatcher import RequestDispatcher
from helpers.request_helpers import collect_request_params, collect_uploaded_files, get_real_ip
from helpers.response_helpers import build_envelope, envelope_response, error_response
from helpers.validation_helpers import sanitize_action_param
from logging_helper import LoggingHelper, LogType

logger = LoggingHelper.get_logger(LogType.MAIN)

# Create blueprint
bp = Blueprint('datatables', __name__, url_prefix='/datatables')

# Database instance and table registry will be injected
db = None
tables: Dict[str, object] = {}
file_store = None


def init_datatables_routes(database, table_configs: Dict[str, object], store=None):
    """
    Initialize the DataTables routes.

    Args:
        database: Database collaborator used by every table
        table_configs: Mapping of URL key -> TableConfig
        store: Optional storage primitive for uploads (LocalFileStore by default)
    """
    global db, tables, file_store
    db = database
    tables = dict(table_configs)
    file_store = store
    logger.info(f"DataTables routes serving tables: {', '.join(sorted(tables)) or '(none)'}")


@bp.route('/<table_key>/config', methods=['GET'])
def datatables_config(table_key: str) -> Response:
    """Widget settings plus the CSRF token the widget sends as X-CSRFToken."""
    config = tables.get(table_key)
    if config is None:
        logger.warning(f"Unknown DataTables table '{LoggingHelper.sanitize_value(table_key)}' from {get_real_ip()}")
        return error_response('Unknown table', 404)

    return envelope_response(build_envelope(True, '', {
        'config': config.to_client_config(),
        'csrf_token': generate_csrf(),
    }))


@bp.route('/<table_key>/ajax', methods=['GET', 'POST'])
def datatables_ajax(table_key: str) -> Response:
    """Run one AJAX action against a registered table and return the JSON envelope."""
    config = tables.get(table_key)
    if config is None:
        logger.warning(f"Unknown DataTables table '{LoggingHelper.sanitize_value(table_key)}' from {get_real_ip()}")
        return error_response('Unknown table', 404)

    params = collect_request_params()
    action = params.get('action')

    # State-changing actions never run from a GET
    if request.method == 'GET' and sanitize_action_param(action) in WRITE_ACTIONS:
        logger.warning(f"Rejected {LoggingHelper.sanitize_value(action)} over GET from {get_real_ip()}")
        return error_response('This action requires POST', 405)

    files = collect_uploaded_files() if request.method == 'POST' else {}

    dispatcher = RequestDispatcher(config, db, file_store=file_store)
    result = dispatcher.handle(action, params, files, client_ip=get_real_ip())
    return envelope_response(result.payload, result.status_code)
