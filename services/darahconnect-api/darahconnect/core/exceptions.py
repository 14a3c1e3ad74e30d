"""
Domain errors raised by the service layer.

Every error carries the HTTP status it maps to and a human readable
(Indonesian) message. ``main.py`` renders them as the standard JSON envelope.
"""


class DarahConnectError(Exception):
    """Base class for errors surfaced to API clients."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequestError(DarahConnectError):
    status_code = 400


class UnauthorizedError(DarahConnectError):
    status_code = 401


class ForbiddenError(DarahConnectError):
    status_code = 403


class NotFoundError(DarahConnectError):
    status_code = 404


class ConflictError(DarahConnectError):
    status_code = 409


class ExternalServiceError(DarahConnectError):
    """A third-party collaborator (payment, mail, image host, OAuth) failed."""

    status_code = 502
