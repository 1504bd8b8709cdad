"""Domain-specific exceptions"""

from typing import Optional


class DomainException(Exception):
    """Base exception for domain layer

    Carries the entity and field responsible for the failure so callers can
    point at the exact record (e.g. "penalty exceeds deposit for item X").
    """

    error_code = "domain_error"

    def __init__(self, message: str, entity: Optional[str] = None, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.entity = entity
        self.field = field


class UnauthorizedError(DomainException):
    """Actor is not allowed to perform the action on this record"""

    error_code = "unauthorized"


class NotFoundError(DomainException):
    """Referenced record does not exist"""

    error_code = "not_found"


class InvalidStateError(DomainException):
    """Transition is not legal from the record's current status"""

    error_code = "invalid_state"


class ValidationError(DomainException):
    """Input is malformed: amounts out of range, text too short/long, bad files"""

    error_code = "validation_error"


class StorageError(DomainException):
    """Evidence store upload or delete failed"""

    error_code = "storage_error"


class CollaboratorError(DomainException):
    """An external service the workflow depends on is down or answered with garbage"""

    error_code = "collaborator_unavailable"
