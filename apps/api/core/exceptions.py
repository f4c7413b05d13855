"""
Custom exception classes and error handling.

Two families live here:

- ``APIException`` and subclasses: request-level errors with a consistent
  JSON body (``detail`` + ``error_code``).
- ``DawnProtocolError`` and subclasses: terminal failures of a dawn run
  (external dependency unavailable). The run aborts, the session is
  rolled back and the previous record stays in place. Data that is merely
  missing is never an exception; it is carried as an explicit
  UNAVAILABLE / estimated value instead.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=detail,
            error_code=error_code
        )


class ConflictError(APIException):
    """Resource conflict (e.g., illegal state transition)."""

    def __init__(self, detail: str, error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code=error_code
        )


class InvalidCardTransitionError(ConflictError):
    """A smart card was asked to leave a terminal status."""

    def __init__(self, card_id: str, current: str, requested: str):
        super().__init__(
            detail=f"Card {card_id} is {current}; cannot move to {requested}",
            error_code="INVALID_CARD_TRANSITION",
        )
        self.card_id = card_id
        self.current = current
        self.requested = requested


# ---------------------------------------------------------------------------
# Dawn run failures
# ---------------------------------------------------------------------------

class DawnProtocolError(Exception):
    """Terminal failure of a dawn run."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "DAWN_PROTOCOL_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PermissionDeniedError(DawnProtocolError):
    """The wearable provider refused access to health data."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "WEARABLE_PERMISSION_DENIED"


class WearableProviderError(DawnProtocolError):
    """The wearable provider could not be reached or returned garbage."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "WEARABLE_PROVIDER_ERROR"


class StoreUnavailableError(DawnProtocolError):
    """The persistence layer failed mid-run."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "STORE_UNAVAILABLE"
