# app/models/__init__.py
from .user import User
from .patient import Patient
from .billing import Invoice
from .pharmacy_inventory import Medication, InventoryBatch
from .pharmacy_prescription import (
    Prescription,
    PrescriptionLine,
    PrescriptionStatus,
    DispenseRecord,
)

__all__ = [
    "User",
    "Patient",
    "Invoice",
    "Medication",
    "InventoryBatch",
    "Prescription",
    "PrescriptionLine",
    "PrescriptionStatus",
    "DispenseRecord",
]
