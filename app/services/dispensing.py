# FILE: app/services/dispensing.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import settings
from app.core.exceptions import (
    ConcurrencyConflictError,
    InsufficientStockError,
    InvalidStateError,
    NotFoundError,
    PaymentRequiredError,
    PharmacyError,
)
from app.models.pharmacy_inventory import InventoryBatch
from app.models.pharmacy_prescription import (
    DispenseRecord,
    Prescription,
    PrescriptionLine,
    PrescriptionStatus,
)
from app.services.inventory import decrement_batch, get_active_batches
from app.services.payment_gate import PaymentGate

logger = logging.getLogger(__name__)

DISPENSE_OK_MESSAGE = "Medication dispensed successfully"


@dataclass
class DispenseResult:
    prescription: Prescription
    dispense_records: List[DispenseRecord] = field(default_factory=list)
    message: str = DISPENSE_OK_MESSAGE


def _lock_prescription(db: Session, prescription_id: int) -> Prescription:
    rx = (db.query(Prescription).filter(
        Prescription.id == prescription_id).with_for_update().populate_existing().first())
    if not rx:
        raise NotFoundError("Prescription not found",
                            details={"prescription_id": prescription_id})
    return rx


def _take_from_batch(db: Session, batch: InventoryBatch, wanted: int) -> int:
    """
    Decrement up to `wanted` units from one batch, re-reading the row when a
    concurrent writer moved it. Returns the units actually taken (0 when the
    batch ran dry under us).
    """
    for _ in range(max(settings.DISPENSE_MAX_RETRIES, 1)):
        take = min(int(batch.available_quantity or 0), wanted)
        if take <= 0:
            return 0
        if decrement_batch(db, batch, take):
            return take
        logger.warning("Batch %s changed underneath (version %s), re-reading",
                       batch.id, batch.version)
        db.refresh(batch, with_for_update=True)

    raise ConcurrencyConflictError(
        "Inventory batch is being updated concurrently, please retry.",
        details={"batch_id": batch.id},
    )


def _allocate_line_fefo(
    db: Session,
    line: PrescriptionLine,
    *,
    actor_id: int,
    now: datetime,
    notes: Optional[str],
) -> List[DispenseRecord]:
    """
    Draw the line's quantity from active batches, earliest expiry first.
    One DispenseRecord per batch touched.
    """
    remaining = int(line.quantity)
    records: List[DispenseRecord] = []

    batches = get_active_batches(db, line.medication_id, lock=True,
                                 in_stock_only=True)
    for batch in batches:
        if remaining <= 0:
            break

        taken = _take_from_batch(db, batch, remaining)
        if taken <= 0:
            continue

        rec = DispenseRecord(
            line=line,
            batch_id=batch.id,
            quantity=taken,
            batch_number=batch.batch_number,
            expiry_date=batch.expiry_date,
            dispensed_by_id=actor_id,
            dispensed_at=now,
            notes=notes,
        )
        db.add(rec)
        records.append(rec)
        remaining -= taken

    if remaining > 0:
        available = int(line.quantity) - remaining
        raise InsufficientStockError(
            medication_id=line.medication_id,
            medication_name=line.medication.name if line.medication else None,
            required=int(line.quantity),
            available=available,
        )

    line.is_paid = True
    return records


def dispense(
    db: Session,
    prescription_id: int,
    actor_id: int,
    gate: PaymentGate,
    notes: Optional[str] = None,
) -> DispenseResult:
    """
    Dispense every line of a PENDING, fully paid prescription.

    All-or-nothing: any failure (stock, payment, concurrent change) rolls the
    whole transaction back, so batches, lines and the prescription stay as
    they were.
    """
    try:
        rx = _lock_prescription(db, prescription_id)

        if rx.status != PrescriptionStatus.PENDING.value:
            raise InvalidStateError(
                f"Cannot dispense {rx.status.lower()} prescription",
                current_status=rx.status,
            )
        if not rx.lines:
            raise InvalidStateError("Cannot dispense an empty prescription",
                                    current_status=rx.status)

        outstanding = Decimal(str(gate.get_outstanding_balance(db, rx.id)))
        if outstanding > 0:
            raise PaymentRequiredError(prescription_id=rx.id,
                                       outstanding_balance=outstanding)

        now = datetime.utcnow()
        records: List[DispenseRecord] = []
        for line in rx.lines:
            records.extend(
                _allocate_line_fefo(db, line, actor_id=actor_id, now=now,
                                    notes=notes))

        rx.status = PrescriptionStatus.DISPENSED.value
        rx.dispensed_at = now
        rx.dispensed_by_id = actor_id
        rx.balance = max(outstanding, Decimal("0"))
        if notes:
            rx.notes = f"{rx.notes or ''}\n{notes}".strip()

        db.commit()
    except StaleDataError:
        db.rollback()
        logger.warning("Prescription %s changed during dispense", prescription_id)
        raise ConcurrencyConflictError(
            "Prescription was modified by another request, please retry.",
            details={"prescription_id": prescription_id},
        )
    except PharmacyError as e:
        db.rollback()
        logger.warning("Dispense of prescription %s refused: %s (%s)",
                       prescription_id, e.message, e.code)
        raise
    except Exception:
        db.rollback()
        logger.exception("Dispense of prescription %s failed", prescription_id)
        raise

    db.refresh(rx)
    logger.info("Prescription %s dispensed by %s: %s record(s)", rx.id,
                actor_id, len(records))
    return DispenseResult(prescription=rx, dispense_records=records)
