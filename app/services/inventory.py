# FILE: app/services/inventory.py
from __future__ import annotations

import logging
from datetime import datetime, date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.attributes import set_committed_value
from sqlalchemy import func, or_, update

from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models.pharmacy_inventory import Medication, InventoryBatch
from app.models.pharmacy_prescription import DispenseRecord
from app.schemas.pharmacy_inventory import (
    MedicationCreate,
    BatchCreate,
    BatchUpdate,
)

logger = logging.getLogger(__name__)

# ---------- Catalog ----------


def create_medication(db: Session, data: MedicationCreate) -> Medication:
    exists = (db.query(Medication.id).filter(
        Medication.drug_code == data.drug_code).first())
    if exists:
        raise ConflictError(f"Drug code {data.drug_code} already exists",
                            details={"drug_code": data.drug_code})

    med = Medication(**data.model_dump())
    db.add(med)
    db.commit()
    db.refresh(med)
    return med


def list_medications(
    db: Session,
    *,
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_active: Optional[bool] = None,
    controlled_drug: Optional[bool] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Medication]:
    q = db.query(Medication)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(
            or_(
                Medication.name.ilike(like),
                Medication.generic_name.ilike(like),
                Medication.drug_code.ilike(like),
            ))
    if category:
        q = q.filter(Medication.category == category)
    if is_active is not None:
        q = q.filter(Medication.is_active == is_active)
    if controlled_drug is not None:
        q = q.filter(Medication.controlled_drug == controlled_drug)
    return q.order_by(Medication.name.asc()).offset(offset).limit(limit).all()


def get_medication(db: Session, medication_id: int, *, with_batches: bool = False) -> Medication:
    q = db.query(Medication)
    if with_batches:
        q = q.options(selectinload(Medication.batches))
    med = q.filter(Medication.id == medication_id).first()
    if not med:
        raise NotFoundError("Medication not found",
                            details={"medication_id": medication_id})
    return med


def get_active_medication(db: Session, medication_id: int) -> Medication:
    med = db.get(Medication, medication_id)
    if not med or not med.is_active:
        raise NotFoundError(
            f"Medication with ID {medication_id} not found or inactive",
            details={"medication_id": medication_id},
        )
    return med


def set_medication_active(db: Session, medication_id: int, is_active: bool) -> Medication:
    med = get_medication(db, medication_id)
    med.is_active = is_active
    db.commit()
    db.refresh(med)
    logger.info("Medication %s active=%s", med.id, is_active)
    return med


# ---------- Batches (restock) ----------


def receive_batch(db: Session, data: BatchCreate) -> InventoryBatch:
    get_medication(db, data.medication_id)

    dup = (db.query(InventoryBatch.id).filter(
        InventoryBatch.batch_number == data.batch_number).first())
    if dup:
        raise ConflictError(f"Batch number {data.batch_number} already exists",
                            details={"batch_number": data.batch_number})

    if data.expiry_date <= date.today():
        raise ValidationError("Expiry date must be in the future",
                              details={"expiry_date": data.expiry_date})

    batch = InventoryBatch(
        medication_id=data.medication_id,
        batch_number=data.batch_number,
        expiry_date=data.expiry_date,
        quantity=data.quantity,
        available_quantity=data.quantity,
        unit_cost=data.unit_cost,
        selling_price=data.selling_price,
        supplier=data.supplier or "",
        purchase_date=data.purchase_date,
        is_active=True,
        version=1,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    logger.info("Received batch %s (%s units) for medication %s",
                batch.batch_number, batch.quantity, batch.medication_id)
    return batch


def update_batch(db: Session, batch_id: int, data: BatchUpdate) -> InventoryBatch:
    batch = db.get(InventoryBatch, batch_id)
    if not batch:
        raise NotFoundError("Inventory batch not found",
                            details={"batch_id": batch_id})

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(batch, field, value)

    db.commit()
    db.refresh(batch)
    return batch


# ---------- FEFO ----------


def _active_batches_query(db: Session, medication_id: int):
    q = db.query(InventoryBatch).filter(
        InventoryBatch.medication_id == medication_id,
        InventoryBatch.is_active.is_(True),
    )
    if settings.DISPENSE_SKIP_EXPIRED:
        q = q.filter(InventoryBatch.expiry_date >= date.today())
    return q


def get_active_batches(
    db: Session,
    medication_id: int,
    *,
    lock: bool = False,
    in_stock_only: bool = False,
) -> List[InventoryBatch]:
    """
    Active batches of a medication in FEFO order.

    - earliest expiry first
    - same expiry -> lower id (received first) first, so allocations are
      repeatable
    - lock=True takes row locks (SELECT ... FOR UPDATE) for the rest of the
      transaction
    """
    q = _active_batches_query(db, medication_id)
    if in_stock_only:
        q = q.filter(InventoryBatch.available_quantity > 0)

    q = q.order_by(
        InventoryBatch.expiry_date.asc(),  # earliest expiry first
        InventoryBatch.id.asc(),  # tie-breaker
    )
    if lock:
        q = q.with_for_update().populate_existing()
    return q.all()


def decrement_batch(db: Session, batch: InventoryBatch, qty: int) -> bool:
    """
    Compare-and-swap stock decrement.

    Succeeds only if the row still has the version we read and enough stock;
    returns False when another transaction got there first (caller re-reads
    and retries). On success the in-memory batch is brought up to date
    without another SELECT.
    """
    if qty <= 0:
        raise ValueError("Quantity must be > 0")

    seen_version = batch.version
    seen_available = batch.available_quantity
    now = datetime.utcnow()

    result = db.execute(
        update(InventoryBatch).where(
            InventoryBatch.id == batch.id,
            InventoryBatch.version == seen_version,
            InventoryBatch.available_quantity >= qty,
        ).values(
            available_quantity=InventoryBatch.available_quantity - qty,
            version=InventoryBatch.version + 1,
            updated_at=now,
        ).execution_options(synchronize_session=False))

    if result.rowcount != 1:
        return False

    set_committed_value(batch, "available_quantity", seen_available - qty)
    set_committed_value(batch, "version", seen_version + 1)
    set_committed_value(batch, "updated_at", now)
    return True


def stock_movements(db: Session, medication_id: int) -> dict:
    """
    received == available + dispensed must hold for every medication.
    """
    get_medication(db, medication_id)

    received, available = (db.query(
        func.coalesce(func.sum(InventoryBatch.quantity), 0),
        func.coalesce(func.sum(InventoryBatch.available_quantity), 0),
    ).filter(InventoryBatch.medication_id == medication_id).one())

    dispensed = (db.query(func.coalesce(func.sum(DispenseRecord.quantity),
                                        0)).join(
                                            InventoryBatch,
                                            InventoryBatch.id == DispenseRecord.batch_id,
                                        ).filter(
                                            InventoryBatch.medication_id ==
                                            medication_id).scalar())

    return {
        "medication_id": medication_id,
        "received": int(received or 0),
        "available": int(available or 0),
        "dispensed": int(dispensed or 0),
    }


# ---------- Stock alerts ----------


def _alert_batches_query(db: Session):
    return (db.query(InventoryBatch).options(
        selectinload(InventoryBatch.medication)).filter(
            InventoryBatch.is_active.is_(True)))


def _batch_row(batch: InventoryBatch) -> dict:
    med = batch.medication
    return {
        "batch_id": batch.id,
        "medication_id": batch.medication_id,
        "medication_name": med.name if med else "",
        "drug_code": med.drug_code if med else "",
        "category": (med.category if med else "") or "",
        "batch_number": batch.batch_number,
        "expiry_date": batch.expiry_date,
        "available_quantity": int(batch.available_quantity or 0),
    }


def inventory_summary(db: Session) -> dict:
    """
    Stock position over all active batches.

    - total_value is cost value of what is on hand (unit_cost * available)
    - low stock / expiring use the same thresholds as the alert lists
    """
    batches = (_alert_batches_query(db).order_by(
        InventoryBatch.medication_id.asc(),
        InventoryBatch.expiry_date.asc(),
        InventoryBatch.id.asc(),
    ).all())

    horizon = date.today() + timedelta(days=settings.EXPIRY_ALERT_DAYS)
    total_value = Decimal("0")
    low_stock = expiring = controlled = 0
    categories: Dict[str, int] = {}

    for b in batches:
        available = int(b.available_quantity or 0)
        total_value += Decimal(str(b.unit_cost or 0)) * available
        if available <= settings.LOW_STOCK_THRESHOLD:
            low_stock += 1
        if b.expiry_date <= horizon:
            expiring += 1
        if b.medication is not None and b.medication.controlled_drug:
            controlled += 1
        category = (b.medication.category if b.medication else "") or "Uncategorized"
        categories[category] = categories.get(category, 0) + 1

    return {
        "total_items": len(batches),
        "total_value": total_value.quantize(Decimal("0.01")),
        "low_stock_items": low_stock,
        "expiring_items": expiring,
        "controlled_drugs": controlled,
        "categories": categories,
        "inventory": batches,
    }


def low_stock_alerts(db: Session) -> List[dict]:
    """Active batches at or under the low-stock threshold, emptiest first."""
    batches = (_alert_batches_query(db).filter(
        InventoryBatch.available_quantity <= settings.LOW_STOCK_THRESHOLD).order_by(
            InventoryBatch.available_quantity.asc(),
            InventoryBatch.id.asc(),
        ).all())

    out = []
    for b in batches:
        row = _batch_row(b)
        row["alert_level"] = ("CRITICAL" if row["available_quantity"]
                              <= settings.CRITICAL_STOCK_THRESHOLD else "LOW")
        out.append(row)
    return out


def expiring_batches(db: Session, days: Optional[int] = None) -> List[dict]:
    """
    Active batches with stock left that expire within `days` (already
    expired ones included, with a negative days_until_expiry). FEFO order.
    """
    if days is None:
        days = settings.EXPIRY_ALERT_DAYS
    today = date.today()
    horizon = today + timedelta(days=days)

    batches = (_alert_batches_query(db).filter(
        InventoryBatch.expiry_date <= horizon,
        InventoryBatch.available_quantity > 0,
    ).order_by(
        InventoryBatch.expiry_date.asc(),
        InventoryBatch.id.asc(),
    ).all())

    out = []
    for b in batches:
        row = _batch_row(b)
        row["days_until_expiry"] = (b.expiry_date - today).days
        out.append(row)
    return out
