"""Error taxonomy shared by the auth, store and API layers.

Each error carries the HTTP status it maps to. The API turns any `AppError`
into `{"message": <code>}` with that status.
"""

from __future__ import annotations


class AppError(Exception):
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class Unauthorized(AppError):
    """No credential was presented."""

    status_code = 401


class Forbidden(AppError):
    """A credential was presented but does not grant access."""

    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class InternalError(AppError):
    status_code = 500
