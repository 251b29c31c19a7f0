from flask import jsonify, g, current_app
from werkzeug.exceptions import HTTPException
from sqlalchemy.exc import SQLAlchemyError

from .extensions import db
from .exceptions import BoothError, StateConflictError

def _payload(code: str, message: str, details=None, status=400):
    return (
        jsonify({
            "success": False,
            "error": message,
            "code": code,
            "details": details or None,
            "request_id": getattr(g, "request_id", None),
        }),
        status,
    )

def register_error_handlers(app):
    @app.errorhandler(BoothError)
    def handle_booth_error(e: BoothError):
        if e.status_code >= 500:
            app.logger.error("Booth error code=%s request_id=%s: %s", e.code, getattr(g, "request_id", None), e.message)
            return _payload(e.code, "An unexpected error occurred", status=e.status_code)

        # Expected and frequent; not a failure.
        level = "info" if isinstance(e, StateConflictError) else "debug"
        getattr(app.logger, level)("Rejected request code=%s: %s", e.code, e.message)
        return _payload(e.code, e.message, details=e.details, status=e.status_code)

    # Validation errors arrive here via abort(400, description=dict), see utils/validation.py
    # Generic HTTP errors (404, 403, 401, etc.)
    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        desc = e.description

        # If we pass structured error info via abort(description=dict)
        if isinstance(desc, dict):
            code = desc.get("code") or e.name.replace(" ", "_").upper()
            message = desc.get("message") or e.name
            details = desc.get("errors") or desc.get("details")
            return _payload(code=code, message=message, details=details, status=e.code or 400)

        return _payload(
            code=e.name.replace(" ", "_").upper(),
            message=desc or e.name,
            details=None,
            status=e.code or 400
        )

    @app.errorhandler(SQLAlchemyError)
    def handle_db_error(_):
        db.session.rollback()
        current_app.logger.exception("DB error request_id=%s", getattr(g, "request_id", None))
        return _payload("INTERNAL_SERVER_ERROR", "An unexpected error occurred", status=500)

    @app.errorhandler(404)
    def handle_404(_):
        return _payload("NOT_FOUND", "Resource not found", status=404)

    @app.errorhandler(500)
    def handle_500(_):
        # Don't leak internals
        return _payload("INTERNAL_SERVER_ERROR", "An unexpected error occurred", status=500)

def register_jwt_error_handlers(jwt):
    """Render Flask-JWT-Extended failures in the same envelope as everything else."""

    @jwt.unauthorized_loader
    def _missing_token(reason):
        return _payload("UNAUTHORIZED", reason or "Missing authorization token", status=401)

    @jwt.invalid_token_loader
    def _invalid_token(reason):
        return _payload("INVALID_TOKEN", reason or "Invalid token", status=401)

    @jwt.expired_token_loader
    def _expired_token(jwt_header, jwt_payload):
        return _payload("TOKEN_EXPIRED", "Token has expired", status=401)

    @jwt.revoked_token_loader
    def _revoked_token(jwt_header, jwt_payload):
        return _payload("TOKEN_REVOKED", "Token has been revoked", status=401)

    @jwt.needs_fresh_token_loader
    def _needs_fresh(jwt_header, jwt_payload):
        return _payload("FRESH_TOKEN_REQUIRED", "Fresh token required", status=401)
