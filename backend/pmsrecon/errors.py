# Overview: Error taxonomy shared by services and routes.

"""
All business failures raised by the service layer derive from PmsError.

Each class carries the HTTP-style status a hosted deployment maps it to
and a stable machine code. `field` names the offending input when there
is one, so clients can render field-level messages.
"""
from __future__ import annotations


class PmsError(Exception):
    """Base class for reconciliation failures."""

    status_code = 400
    code = "PMS_ERROR"

    def __init__(self, message: str, *, field: str | None = None, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message, "code": self.code}
        if self.field:
            payload["field"] = self.field
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(PmsError):
    """Malformed or out-of-range input. Always user-correctable."""
    code = "VALIDATION_ERROR"


class RolloverValueOutOfRange(ValidationError):
    code = "ROLLOVER_VALUE_OUT_OF_RANGE"


class PriceNotAvailable(ValidationError):
    """The pricing service has no unit price for the product on that date."""
    code = "PRICE_NOT_AVAILABLE"


class DuplicatePumpNumber(PmsError):
    code = "DUPLICATE_PUMP_NUMBER"


class DuplicateReading(PmsError):
    code = "DUPLICATE_READING"


class ModificationWindowExpired(PmsError):
    status_code = 403
    code = "MODIFICATION_WINDOW_EXPIRED"


class PumpNotFound(PmsError):
    status_code = 404
    code = "PUMP_NOT_FOUND"


class ReadingNotFound(PmsError):
    status_code = 404
    code = "READING_NOT_FOUND"


class CalculationNotFound(PmsError):
    status_code = 404
    code = "CALCULATION_NOT_FOUND"


class InvalidStateTransition(PmsError):
    status_code = 409
    code = "INVALID_STATE_TRANSITION"


class StorageError(PmsError):
    """Transient database failure. Safe to retry the single-row operation."""
    status_code = 503
    code = "STORAGE_ERROR"
