"""Base service exceptions.

These exceptions are raised by the service layer and should be caught
by the API layer and converted to appropriate HTTP responses. Store failures
(SQLAlchemy errors) are not wrapped and propagate as infrastructure errors.
"""

from enum import Enum


class ServiceError(Exception):
    """Base service exception."""

    pass


class NotFoundError(ServiceError):
    """Resource not found."""

    pass


class ValidationError(ServiceError):
    """Validation error."""

    pass


class ConflictError(ServiceError):
    """Request conflicts with the current state of a resource."""

    pass


class CapacityError(ServiceError):
    """A configured limit has been exhausted."""

    pass


class UnexpectedStatusError(ConflictError):
    """Status in DB doesn't match expected status - another request modified it."""

    def __init__(self, expected: frozenset[Enum], actual: Enum):
        self.expected = expected
        self.actual = actual
        expected_names = ", ".join(sorted(e.value for e in expected))
        super().__init__(f"Expected status in ({expected_names}), got {actual.value}")
