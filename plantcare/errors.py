from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from .models import db


class APIError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None, details=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.details = details

    def to_dict(self):
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(APIError):
    status_code = 400


class AuthenticationError(APIError):
    status_code = 401


class NotFoundError(APIError):
    status_code = 404


class UpstreamError(APIError):
    status_code = 500


class UpstreamTimeout(UpstreamError):
    status_code = 504


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def handle_api_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({"error": e.description or e.name}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        current_app.logger.exception("Unhandled error")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500
