"""
Logistics Pro Exception Hierarchy

All exceptions include code, message, and details for audit trail and
debugging, plus the HTTP status the API layer renders them with.

Exception Hierarchy:
    LogisticsError
    ├── ShipmentValidationError
    ├── ShipmentNotFoundError
    ├── ConflictError
    │   └── TrackingNumberConflictError
    ├── UnauthorizedError
    ├── ForbiddenError
    └── StoreFailureError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class LogisticsError(Exception):
    """
    Base exception for all Logistics Pro errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        status_code: HTTP status used when surfaced to a caller
    """

    default_code: str = "LOGISTICS_ERROR"
    status_code: int = 400

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ShipmentValidationError(LogisticsError):
    """Missing or malformed shipment fields."""
    default_code = "VALIDATION_ERROR"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class ShipmentNotFoundError(LogisticsError):
    """Unknown shipment id or tracking number."""
    default_code = "SHIPMENT_NOT_FOUND"
    status_code = 404


class ConflictError(LogisticsError):
    """A uniqueness constraint was violated."""
    default_code = "CONFLICT"
    status_code = 409


class TrackingNumberConflictError(ConflictError):
    """Generated tracking number already exists in the store."""
    default_code = "TRACKING_NUMBER_CONFLICT"

    def __init__(self, message: str, tracking_number: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details["tracking_number"] = tracking_number
        super().__init__(message, details=details, **kwargs)


class UnauthorizedError(LogisticsError):
    """Missing, invalid or expired credential."""
    default_code = "UNAUTHORIZED"
    status_code = 401


class ForbiddenError(LogisticsError):
    """Authenticated principal may not perform the action."""
    default_code = "FORBIDDEN"
    status_code = 403


class StoreFailureError(LogisticsError):
    """
    Underlying persistence failure.

    The message is always generic; the original exception is chained and
    logged but never sent to the caller.
    """
    default_code = "STORE_FAILURE"
    status_code = 500

    def __init__(self, message: str = "The shipment store is unavailable. Please try again later.", **kwargs):
        super().__init__(message, **kwargs)
