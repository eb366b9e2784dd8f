from django.core.exceptions import ValidationError

# Input errors are plain django ValidationError (raised by clean()/full_clean()
# and by service pre-checks); re-exported so callers import one module.
__all__ = [
    "ValidationError",
    "BookkeepingError",
    "NotFoundError",
    "ConflictError",
    "StateError",
    "BalanceError",
    "DirectionMismatchError",
]


class BookkeepingError(Exception):
    """Base for domain errors raised by the books_core services."""

    status_code = 400

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(BookkeepingError):
    """Raised when a referenced entity, account, invoice, payment or party is missing."""

    status_code = 404


class ConflictError(BookkeepingError):
    """Raised on duplicate account number + routing code or duplicate document number."""

    status_code = 409


class StateError(BookkeepingError):
    """Raised when the record's current status does not allow the operation."""

    status_code = 409


class BalanceError(BookkeepingError):
    """Raised when an amount exceeds what is unallocated, due, or available."""

    status_code = 400


class DirectionMismatchError(BookkeepingError):
    """Raised when a payment's direction does not match the invoice type."""

    status_code = 400
