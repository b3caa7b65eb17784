# storefront/errors.py
from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from storefront.extensions import db


class ServiceError(Exception):
    """Business-rule failure that maps straight onto a JSON error response."""

    status = 400

    def __init__(self, message: str, status: int | None = None, **extra):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status
        self.extra = extra

    def to_response(self):
        body = {"error": self.message}
        body.update(self.extra)
        return jsonify(body), self.status


class NotFound(ServiceError):
    status = 404


class Conflict(ServiceError):
    status = 409


class ProviderError(ServiceError):
    """A third party (image host, payment gateway) refused or could not be reached."""

    status = 502


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def _service_error(err: ServiceError):
        return err.to_response()

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        if not request.path.startswith("/api/"):
            return err
        return jsonify({"error": err.name}), err.code

    @app.errorhandler(500)
    def _server_error(err):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500
