# movievault/core/errors.py
"""
Application error kinds.

Each kind carries the HTTP status the boundary should answer with; the
exception handlers in movievault.main turn them into the response envelope.
"""
from __future__ import annotations


class AppError(Exception):
    status_code: int = 500

    def __init__(self, message: str = "Internal server error", status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Malformed or out-of-range input. Raised before any write."""
    status_code = 400


class UnauthorizedError(AppError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    status_code = 403

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409


class StorageError(AppError):
    """Unclassified database failure (constraint violation, lost connection...)."""
    status_code = 500

    def __init__(self, message: str = "Database error") -> None:
        super().__init__(message)


__all__ = [
    "AppError",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "StorageError",
]
