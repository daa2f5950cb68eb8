"""
Service-layer error kinds.

Each kind carries the HTTP status the API answers with, so views never have
to guess from message text.
"""


class ServiceError(Exception):
    """Base class for every failure a service raises on purpose."""
    status_code = 500

    def __init__(self, message, *, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        return self.message


class InvalidInput(ServiceError):
    """Missing or malformed field, or a business rule violation."""
    status_code = 400


class RecordNotFound(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    """Duplicate code, deleting the base currency, record still in use."""
    status_code = 409
