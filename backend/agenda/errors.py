"""Domain exceptions raised by services and guards.

Each exception carries the HTTP status it maps to; the handlers in
`agenda.exception_handlers` render them into the standard error envelope.
"""

from typing import List, Optional


class AgendaError(Exception):
    """Base exception for all directory errors."""

    status_code = 500

    def __init__(self, message: str, errors: Optional[List[dict]] = None):
        self.message = message
        self.errors = errors
        super().__init__(message)


class BadRequestError(AgendaError):
    """Raised when a request references data that cannot be used."""

    status_code = 400


class AuthenticationError(AgendaError):
    """Raised when the caller cannot be identified."""

    status_code = 401


class ForbiddenError(AgendaError):
    """Raised when the caller lacks the role or ownership required."""

    status_code = 403


class NotFoundError(AgendaError):
    """Raised when a requested record does not exist."""

    status_code = 404


class ConflictError(AgendaError):
    """Raised on uniqueness violations and dependent-row guards."""

    status_code = 409


class InvalidTransitionError(ConflictError):
    """Raised when an invitation would leave a terminal state."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"invalid state transition: '{current}' -> '{requested}'")
