"""
Error taxonomy and the single place where failures become HTTP responses.

Handlers raise the exceptions defined here; database constraint violations
raised by psycopg2 are translated in `register_error_handlers` rather than in
each route.
"""

import logging
from typing import Any, Dict, List, Optional

import psycopg2.errors
from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from gigbuddy.api import api_error


class ApiError(Exception):
    """Base class for every error that maps to a client-facing response."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.code = code
        self.details = details


class ValidationError(ApiError):
    status_code = 400

    def __init__(self, message: str = "Validation failed", details=None) -> None:
        super().__init__(message, details=details or [])


class AuthenticationError(ApiError):
    """Missing, malformed, or expired credentials. `code` tells them apart."""

    status_code = 401


class AuthorizationError(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class InvalidReferenceError(ApiError):
    status_code = 400


class ServiceUnavailableError(ApiError):
    """No database connection came free within the pool's wait timeout."""

    status_code = 503


# Friendly messages for the unique constraints declared in schema.sql
UNIQUE_CONSTRAINT_MESSAGES = {
    "users_email_key": "Email already registered",
    "collections_user_id_name_key": "You already have a collection with this name",
    "collection_gigs_pkey": "Gig already in collection",
}


def constraint_name(exc: psycopg2.Error) -> Optional[str]:
    diag = getattr(exc, "diag", None)
    return getattr(diag, "constraint_name", None)


def translate_db_error(exc: psycopg2.Error) -> ApiError:
    """
    Map a psycopg2 integrity error onto the taxonomy.

    Args:
        exc (psycopg2.Error): The driver exception.

    Returns:
        ApiError: The matching client error, or a generic 500.
    """
    constraint = constraint_name(exc)

    if isinstance(exc, psycopg2.errors.UniqueViolation):
        message = UNIQUE_CONSTRAINT_MESSAGES.get(constraint, "Duplicate entry")
        return ConflictError(message, code="DUPLICATE")
    if isinstance(exc, psycopg2.errors.ForeignKeyViolation):
        return InvalidReferenceError("Referenced record does not exist", code="INVALID_REFERENCE")
    if isinstance(exc, psycopg2.errors.CheckViolation):
        return ValidationError(
            "Validation failed",
            details=[{"field": constraint or "unknown", "message": "Value violates a constraint"}],
        )
    return ApiError("Internal server error")


def error_response(err: ApiError) -> tuple:
    body = api_error(err.message, code=err.code, details=err.details)
    return jsonify(body), err.status_code


def register_error_handlers(app: Flask) -> None:
    """
    Attach the error handlers that turn every failure into the uniform envelope.
    """

    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError) -> tuple:
        if err.status_code >= 500:
            logging.error(f"[Error] {err.message}")
        else:
            logging.info(f"[Error] {err.status_code} {err.code or ''} {err.message}")
        return error_response(err)

    @app.errorhandler(psycopg2.IntegrityError)
    def handle_integrity_error(exc: psycopg2.IntegrityError) -> tuple:
        err = translate_db_error(exc)
        if err.status_code >= 500:
            logging.exception("[Error] Unhandled integrity error")
        else:
            logging.warning(f"[Error] Constraint violation translated to {err.status_code}: {err.message}")
        return error_response(err)

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException) -> tuple:
        if exc.code == 429:
            message = "Too many requests, please try again later."
        elif exc.code == 404:
            message = "API endpoint not found"
        else:
            message = exc.name
        return jsonify(api_error(message)), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception) -> tuple:
        logging.exception(f"[Error] Unhandled exception: {exc}")
        return jsonify(api_error("Internal server error", message="Something went wrong on our end")), 500
