"""
Error types
===========

Every error raised on purpose by EpiSurv derives from `EpisurvError`, so the
CLI can catch one class, print the message and keep the REPL alive.

Malformed case counts are NOT errors: they are coerced to 0 (see
`models.coerce_count`).
"""

from __future__ import annotations


class EpisurvError(Exception):
    """Base class for EpiSurv errors."""


class ValidationError(EpisurvError, ValueError):
    """Malformed or duplicate disease/location input. The registry is unchanged."""


class EmptyPeriodError(EpisurvError, ValueError):
    """The selected period could not be resolved to any month."""


class EmptyFilterError(EpisurvError, ValueError):
    """Nothing selected in one of the filter dimensions."""

    def __init__(self, dimension: str, message: str = "") -> None:
        self.dimension = dimension
        super().__init__(message or f"Select at least one {dimension}.")


class BackendError(EpisurvError):
    """The REST backend failed or answered with an error body."""


class SessionExpiredError(BackendError):
    """HTTP 401 from the backend: the token is missing, invalid or expired."""
