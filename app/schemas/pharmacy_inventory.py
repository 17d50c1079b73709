# FILE: app/schemas/pharmacy_inventory.py
from __future__ import annotations

from datetime import datetime, date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict

# ---------- Medications ----------


class MedicationBase(BaseModel):
    drug_code: str = Field(..., min_length=1, max_length=100)
    name: str = Field(..., min_length=1, max_length=255)
    generic_name: Optional[str] = ""
    form: Optional[str] = ""
    strength: Optional[str] = ""
    manufacturer: Optional[str] = ""
    category: Optional[str] = ""
    controlled_drug: bool = False
    requires_prescription: bool = True


class MedicationCreate(MedicationBase):
    is_active: bool = True


class MedicationActiveIn(BaseModel):
    is_active: bool


class MedicationOut(MedicationBase):
    id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ---------- Batches ----------


class BatchCreate(BaseModel):
    medication_id: int
    batch_number: str = Field(..., min_length=1, max_length=100)
    expiry_date: date
    quantity: int = Field(..., gt=0)
    unit_cost: Decimal = Field(..., gt=0)
    selling_price: Decimal = Field(..., gt=0)
    supplier: Optional[str] = None
    purchase_date: Optional[date] = None


class BatchUpdate(BaseModel):
    # quantities are deliberately not editable here
    unit_cost: Optional[Decimal] = Field(None, gt=0)
    selling_price: Optional[Decimal] = Field(None, gt=0)
    supplier: Optional[str] = None
    is_active: Optional[bool] = None


class BatchOut(BaseModel):
    id: int
    medication_id: int
    batch_number: str
    expiry_date: date
    quantity: int
    available_quantity: int
    unit_cost: Decimal
    selling_price: Decimal
    supplier: Optional[str]
    purchase_date: Optional[date]
    is_active: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class MedicationDetailOut(MedicationOut):
    batches: List[BatchOut] = []


# ---------- Availability ----------


class AvailabilityOut(BaseModel):
    medication_id: int
    requested_quantity: int
    unit_price: Optional[Decimal]
    available_quantity: int
    can_fulfill: bool


class StockMovementOut(BaseModel):
    medication_id: int
    received: int
    available: int
    dispensed: int


# ---------- Stock alerts ----------


class InventorySummaryOut(BaseModel):
    total_items: int
    total_value: Decimal
    low_stock_items: int
    expiring_items: int
    controlled_drugs: int
    categories: Dict[str, int] = {}
    inventory: List[BatchOut] = []


class StockAlertBase(BaseModel):
    batch_id: int
    medication_id: int
    medication_name: str
    drug_code: str
    category: str = ""
    batch_number: str
    expiry_date: date
    available_quantity: int


class LowStockAlertOut(StockAlertBase):
    alert_level: str  # LOW | CRITICAL


class ExpiringBatchOut(StockAlertBase):
    days_until_expiry: int
