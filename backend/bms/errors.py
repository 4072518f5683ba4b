# Overview: JSON error responses for exceptions that escape route handlers.

from flask import g, jsonify
from werkzeug.exceptions import HTTPException

from .services.numbering_service import DuplicateDocumentNumberError
from .services.tenant_service import TenantAccessError
from .validation import ConflictError, ValidationError


def register_error_handlers(app) -> None:
    """
    Routes catch their own service errors; these handlers cover the
    cross-cutting ones and anything unexpected.
    """

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        return jsonify({"error": "Validation failed", "errors": e.errors}), 400

    @app.errorhandler(DuplicateDocumentNumberError)
    def handle_duplicate_number(e: DuplicateDocumentNumberError):
        return jsonify({
            "error": str(e),
            "document_type": e.document_type,
            "number": e.number,
            "retry": True,
        }), 409

    @app.errorhandler(ConflictError)
    def handle_conflict(e: ConflictError):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(TenantAccessError)
    def handle_tenant_error(e: TenantAccessError):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        app.logger.exception("Unhandled error (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": "Internal server error"}), 500
