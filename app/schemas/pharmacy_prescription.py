# FILE: app/schemas/pharmacy_prescription.py
from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict

# ---------- Rx Lines ----------


class RxLineBase(BaseModel):
    medication_id: int
    quantity: int = Field(..., gt=0)

    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    instructions: Optional[str] = None


class RxLineCreate(RxLineBase):
    pass


class RxLineUpdate(BaseModel):
    # clinical text only; quantity / price changes mean remove + add
    dosage: Optional[str] = None
    frequency: Optional[str] = None
    duration: Optional[str] = None
    instructions: Optional[str] = None


class DispenseRecordOut(BaseModel):
    id: int
    line_id: int
    batch_id: int
    quantity: int
    batch_number: str
    expiry_date: date
    dispensed_by_id: int
    dispensed_at: datetime
    notes: Optional[str]

    model_config = ConfigDict(from_attributes=True)


class RxLineOut(BaseModel):
    id: int
    prescription_id: int
    medication_id: int

    quantity: int
    unit_price: Decimal
    total_price: Decimal
    is_paid: bool

    dosage: Optional[str]
    frequency: Optional[str]
    duration: Optional[str]
    instructions: Optional[str]

    dispense_records: List[DispenseRecordOut] = []

    model_config = ConfigDict(from_attributes=True)


# ---------- Rx Header ----------


class PrescriptionCreate(BaseModel):
    patient_id: int
    prescriber_id: int
    notes: Optional[str] = None
    lines: List[RxLineCreate] = []


class PrescriptionUpdate(BaseModel):
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class PrescriptionCancelIn(BaseModel):
    reason: Optional[str] = None


class PrescriptionSummaryOut(BaseModel):
    id: int
    patient_id: int
    prescriber_id: int
    prescription_date: datetime
    status: str
    total_amount: Decimal
    balance: Decimal
    notes: Optional[str]

    dispensed_at: Optional[datetime]
    dispensed_by_id: Optional[int]
    cancelled_at: Optional[datetime]

    model_config = ConfigDict(from_attributes=True)


class PrescriptionOut(PrescriptionSummaryOut):
    lines: List[RxLineOut] = []


# ---------- Availability ----------


class LineAvailabilityOut(BaseModel):
    line_id: int
    medication_id: int
    medication_name: str
    required: int
    available: int
    can_fulfill: bool


class PrescriptionAvailabilityOut(BaseModel):
    prescription_id: int
    per_line: List[LineAvailabilityOut]
    can_dispense_all: bool


# ---------- Billing ----------


class InvoiceOut(BaseModel):
    id: int
    invoice_number: str
    patient_id: int
    context_type: str
    context_id: int
    status: str
    net_total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    due_date: Optional[date]

    model_config = ConfigDict(from_attributes=True)


class PaymentStatusOut(BaseModel):
    prescription_id: int
    prescription_status: str
    has_invoice: bool
    invoice_id: Optional[int] = None
    invoice_number: Optional[str] = None
    total_amount: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    is_fully_paid: bool


# ---------- Dispense ----------


class DispenseIn(BaseModel):
    dispensed_by: int
    notes: Optional[str] = None


class DispenseOut(BaseModel):
    prescription: PrescriptionOut
    dispense_records: List[DispenseRecordOut]
    message: str
