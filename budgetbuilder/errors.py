# budgetbuilder/errors.py
"""Exception types shared by the stores, the reconciler and the routes."""

from __future__ import annotations

import re

from flask import jsonify
from sqlalchemy.exc import DBAPIError, SQLAlchemyError


class ValidationError(ValueError):
    """Bad user input; rendered as a 400 with the message."""


class NotAuthenticated(Exception):
    pass


class StorageError(Exception):
    """The backing store rejected an operation (data-class failure)."""


class SchemaError(StorageError):
    """Schema or connection fault: a deployment problem, never an empty result."""


class SaveInProgress(Exception):
    def __init__(self, project_id) -> None:
        super().__init__(f"a save for project {project_id} is already running")
        self.project_id = project_id


SCHEMA_ERROR_PATTERNS = [
    re.compile(r"relation.*does not exist", re.I),
    re.compile(r"column.*does not exist", re.I),
    re.compile(r"function.*does not exist", re.I),
    re.compile(r"type.*does not exist", re.I),
    re.compile(r"no such (table|column|function)", re.I),
    re.compile(r"syntax error", re.I),
    re.compile(r"invalid.*syntax", re.I),
    re.compile(r"could not connect", re.I),
    re.compile(r"unable to open database", re.I),
]


def _sqlstate(error: BaseException) -> str | None:
    if isinstance(error, DBAPIError):
        error = error.orig
    code = getattr(error, 'pgcode', None) or getattr(error, 'sqlstate', None)
    # SQLAlchemy's own ``code`` attribute is a docs link key, not a SQLSTATE
    if code is None and not isinstance(error, SQLAlchemyError):
        code = getattr(error, 'code', None)
    return code if isinstance(code, str) else None


def is_schema_error(error: BaseException | None) -> bool:
    """Tell schema/connection faults apart from ordinary data errors.

    SQLSTATE classes decide first: ``42`` (syntax or access rule) and ``08``
    (connection) are schema errors, ``23`` (integrity constraint) is a data
    error.  Without a usable code the message is matched against known
    "does not exist" / syntax patterns.
    """
    if error is None:
        return False

    code = _sqlstate(error)
    if code and len(code) >= 2:
        error_class = code[:2]
        if error_class in ('42', '08'):
            return True
        if error_class == '23':
            return False

    message = str(error)
    return any(p.search(message) for p in SCHEMA_ERROR_PATTERNS)


def register_error_handlers(app) -> None:
    @app.errorhandler(ValidationError)
    def validation_error(e):
        return jsonify(error=str(e)), 400

    @app.errorhandler(NotAuthenticated)
    def not_authenticated(e):
        return jsonify(error=str(e) or 'User not authenticated'), 401

    @app.errorhandler(SaveInProgress)
    def save_in_progress(e):
        return jsonify(error=str(e)), 409

    @app.errorhandler(SchemaError)
    def schema_error(e):
        return jsonify(error='Storage is misconfigured or unreachable'), 503

    @app.errorhandler(StorageError)
    def storage_error(e):
        return jsonify(error=str(e)), 500

    @app.errorhandler(404)
    def not_found(_):
        return jsonify(error='Not found'), 404

    @app.errorhandler(500)
    def server_error(_):
        return jsonify(error='Internal server error'), 500
