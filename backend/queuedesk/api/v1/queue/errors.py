"""Translation of service errors to HTTP errors."""

from fastapi import HTTPException

from queuedesk.services.exceptions import (
    CapacityError,
    ConflictError,
    NotFoundError,
    ServiceError,
    ValidationError,
)

# Checked in order, first match wins
STATUS_CODES: tuple[tuple[type[ServiceError], int], ...] = (
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (CapacityError, 429),
)


def to_http_exception(error: ServiceError) -> HTTPException:
    """HTTPException carrying the error message and the status code of its category."""
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=str(error))
    return HTTPException(status_code=500, detail="Internal error")
