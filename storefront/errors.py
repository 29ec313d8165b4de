from functools import wraps
from typing import Optional

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """An error that maps onto a JSON response with a fixed status code."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self):
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return jsonify(body), self.status_code


class ValidationError(ApiError):
    status_code = 400


class AuthError(ApiError):
    status_code = 401


class NotFoundError(ApiError):
    status_code = 404


class PayloadTooLarge(ApiError):
    status_code = 413


class InternalError(ApiError):
    status_code = 500


def internal_error(message: str, exc: Exception) -> InternalError:
    details = str(exc) if current_app.config.get("EXPOSE_ERROR_DETAILS", True) else None
    return InternalError(message, details)


def guarded(failure_message: str, log_label: str):
    """Convert unexpected failures inside a route into a 500 JSON response."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except HTTPException:
                raise
            except Exception as exc:
                current_app.logger.error("%s: %s", log_label, exc)
                return internal_error(failure_message, exc).to_response()

        return wrapper

    return decorator
