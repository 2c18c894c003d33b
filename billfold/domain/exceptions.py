"""Domain-specific exceptions"""

from enum import Enum


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Input is non-numeric, out of range or otherwise malformed"""

    pass


class InvalidTransitionError(DomainException):
    """Month-close action is not available in the session's current step"""

    pass


class FailureReason(str, Enum):
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    INTEGRITY = "integrity"


class LedgerOperationError(DomainException):
    """Ledger read or write failed; in-memory state was left untouched"""

    def __init__(self, reason: FailureReason, message: str):
        super().__init__(message)
        self.reason = reason


class DuplicatePaymentError(LedgerOperationError):
    """A service payment already exists for the (service, month, year) key"""

    def __init__(self, message: str):
        super().__init__(FailureReason.CONFLICT, message)
