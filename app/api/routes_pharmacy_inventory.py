# FILE: app/api/routes_pharmacy_inventory.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.schemas.pharmacy_inventory import (
    AvailabilityOut,
    BatchCreate,
    BatchOut,
    BatchUpdate,
    ExpiringBatchOut,
    InventorySummaryOut,
    LowStockAlertOut,
    MedicationActiveIn,
    MedicationCreate,
    MedicationDetailOut,
    MedicationOut,
    StockMovementOut,
)
from app.services import inventory as inventory_service
from app.services import pricing as pricing_service

router = APIRouter(prefix="/pharmacy", tags=["pharmacy-inventory"])

# ------------------------------------------------------------------
# Medications
# ------------------------------------------------------------------


@router.post("/medications",
             response_model=MedicationOut,
             status_code=status.HTTP_201_CREATED)
def create_medication(
        payload: MedicationCreate,
        db: Session = Depends(get_db),
):
    return inventory_service.create_medication(db, payload)


@router.get("/medications", response_model=List[MedicationOut])
def list_medications(
        q: Optional[str] = Query(None, description="Search name / generic / code"),
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
        controlled_drug: Optional[bool] = None,
        limit: int = Query(100, ge=1, le=500),
        offset: int = Query(0, ge=0),
        db: Session = Depends(get_db),
):
    return inventory_service.list_medications(
        db,
        search=q,
        category=category,
        is_active=is_active,
        controlled_drug=controlled_drug,
        limit=limit,
        offset=offset,
    )


@router.get("/medications/{medication_id}", response_model=MedicationDetailOut)
def get_medication(medication_id: int, db: Session = Depends(get_db)):
    return inventory_service.get_medication(db, medication_id, with_batches=True)


@router.patch("/medications/{medication_id}/active", response_model=MedicationOut)
def set_medication_active(
        medication_id: int,
        payload: MedicationActiveIn,
        db: Session = Depends(get_db),
):
    return inventory_service.set_medication_active(db, medication_id,
                                                   payload.is_active)


@router.get("/medications/{medication_id}/availability",
            response_model=AvailabilityOut)
def medication_availability(
        medication_id: int,
        quantity: int = Query(1, gt=0),
        db: Session = Depends(get_db),
):
    """
    Quote only: lowest active selling price + units on hand. Nothing is held.
    """
    a = pricing_service.resolve(db, medication_id, quantity)
    return AvailabilityOut(
        medication_id=a.medication.id,
        requested_quantity=a.requested_quantity,
        unit_price=a.unit_price,
        available_quantity=a.available_quantity,
        can_fulfill=a.can_fulfill,
    )


@router.get("/medications/{medication_id}/stock-movements",
            response_model=StockMovementOut)
def medication_stock_movements(medication_id: int, db: Session = Depends(get_db)):
    return inventory_service.stock_movements(db, medication_id)


# ------------------------------------------------------------------
# Batches
# ------------------------------------------------------------------


@router.post("/inventory/batches",
             response_model=BatchOut,
             status_code=status.HTTP_201_CREATED)
def receive_batch(payload: BatchCreate, db: Session = Depends(get_db)):
    return inventory_service.receive_batch(db, payload)


@router.patch("/inventory/batches/{batch_id}", response_model=BatchOut)
def update_batch(
        batch_id: int,
        payload: BatchUpdate,
        db: Session = Depends(get_db),
):
    return inventory_service.update_batch(db, batch_id, payload)


@router.get("/inventory/summary", response_model=InventorySummaryOut)
def inventory_summary(db: Session = Depends(get_db)):
    return inventory_service.inventory_summary(db)


@router.get("/inventory/low-stock", response_model=List[LowStockAlertOut])
def low_stock_alerts(db: Session = Depends(get_db)):
    return inventory_service.low_stock_alerts(db)


@router.get("/inventory/expiring", response_model=List[ExpiringBatchOut])
def expiring_batches(
        days: Optional[int] = Query(None, ge=0, le=3650,
                                    description="Look-ahead window in days"),
        db: Session = Depends(get_db),
):
    return inventory_service.expiring_batches(db, days)
