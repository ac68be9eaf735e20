"""Exceptions shared by the user, office and booking services."""

from __future__ import annotations


class BookingServiceError(Exception):
    """Base exception for business rule failures."""


class ValidationError(BookingServiceError):
    """Raised when request input breaks a business rule."""


class PermissionDeniedError(BookingServiceError):
    """Raised when the caller's role does not allow the operation."""


class NotFoundError(BookingServiceError):
    """Raised when a referenced office, user or booking does not exist."""


class ConflictError(BookingServiceError):
    """Raised when the request collides with existing state (capacity, duplicates)."""
