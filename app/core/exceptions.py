# FILE: app/core/exceptions.py
from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class PharmacyError(HTTPException):
    """
    Base class for pharmacy domain errors.

    Subclasses HTTPException so services can raise it exactly where they used
    to raise HTTPException; the API layer renders `code` + `details` into the
    standard error envelope.
    """

    status_code_default = status.HTTP_400_BAD_REQUEST
    code_default = "PHARMACY_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.message = message
        self.code = code or self.code_default
        self.details = details or {}
        super().__init__(status_code=status_code or self.status_code_default,
                         detail=message)


class NotFoundError(PharmacyError):
    status_code_default = status.HTTP_404_NOT_FOUND
    code_default = "NOT_FOUND"


class DirectoryLookupError(NotFoundError):
    """Patient / prescriber reference not known to the directory."""
    code_default = "DIRECTORY_NOT_FOUND"


class ConflictError(PharmacyError):
    status_code_default = status.HTTP_409_CONFLICT
    code_default = "CONFLICT"


class ValidationError(PharmacyError):
    status_code_default = status.HTTP_422_UNPROCESSABLE_ENTITY
    code_default = "VALIDATION_ERROR"


class InvalidStateError(PharmacyError):
    status_code_default = status.HTTP_409_CONFLICT
    code_default = "INVALID_STATE"

    def __init__(self, message: str, *, current_status: Optional[str] = None) -> None:
        super().__init__(message, details={"status": current_status})
        self.current_status = current_status


class InsufficientStockError(PharmacyError):
    code_default = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        *,
        medication_id: int,
        medication_name: str,
        required: int,
        available: int,
    ) -> None:
        shortfall = max(required - available, 0)
        super().__init__(
            f"Insufficient stock for {medication_name}. "
            f"Available: {available}, Required: {required}, Short by: {shortfall}",
            details={
                "medication_id": medication_id,
                "medication_name": medication_name,
                "required": required,
                "available": available,
                "shortfall": shortfall,
            },
        )
        self.medication_id = medication_id
        self.medication_name = medication_name
        self.required = required
        self.available = available
        self.shortfall = shortfall


class PaymentRequiredError(PharmacyError):
    status_code_default = status.HTTP_402_PAYMENT_REQUIRED
    code_default = "PAYMENT_REQUIRED"

    def __init__(self, *, prescription_id: int, outstanding_balance: Decimal) -> None:
        super().__init__(
            f"Prescription {prescription_id} must be fully paid before dispensing. "
            f"Current balance: {outstanding_balance}",
            details={
                "prescription_id": prescription_id,
                "outstanding_balance": outstanding_balance,
            },
        )
        self.outstanding_balance = outstanding_balance


class ConcurrencyConflictError(PharmacyError):
    status_code_default = status.HTTP_409_CONFLICT
    code_default = "CONCURRENCY_CONFLICT"
