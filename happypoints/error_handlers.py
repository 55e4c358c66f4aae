"""JSON error handlers registered on the application."""

from flask import Blueprint, current_app, jsonify

from .errors import AppError, NotFoundError, StorageTransactionError, ValidationError

error_handlers_bp = Blueprint("error_handlers", __name__)


def _error_response(error):
    body = {"success": False, "error": error.message, "retryable": error.retryable}
    return jsonify(body), error.status_code


@error_handlers_bp.app_errorhandler(ValidationError)
def handle_validation_error(error):
    """Handles validation errors, including invalid point amounts."""
    current_app.logger.warning(f"Validation Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(NotFoundError)
def handle_not_found_error(error):
    """Handles not found errors."""
    current_app.logger.warning(f"Not Found Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(StorageTransactionError)
def handle_storage_error(error):
    """Handles failed ledger commits; the client may retry."""
    current_app.logger.error(f"Storage Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(AppError)
def handle_app_error(error):
    """Handles generic application errors."""
    current_app.logger.warning(f"Application Error: {error.message}")
    return _error_response(error)


@error_handlers_bp.app_errorhandler(404)
def handle_404(e):
    """Handles generic 404 errors for routes that don't exist."""
    return jsonify({"success": False, "error": "Not found.", "retryable": False}), 404


@error_handlers_bp.app_errorhandler(500)
def handle_500(e):
    """Handles unexpected server errors."""
    current_app.logger.error(f"Internal Server Error: {e}")
    body = {"success": False, "error": "Internal server error.", "retryable": False}
    return jsonify(body), 500
