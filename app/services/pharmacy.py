# FILE: app/services/pharmacy.py
from __future__ import annotations

import logging
from datetime import datetime, date, time
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import (
    ConcurrencyConflictError,
    ConflictError,
    DirectoryLookupError,
    InvalidStateError,
    NotFoundError,
)
from app.models.billing import Invoice
from app.models.pharmacy_prescription import (
    Prescription,
    PrescriptionLine,
    PrescriptionStatus,
)
from app.schemas.pharmacy_prescription import (
    PrescriptionCreate,
    PrescriptionUpdate,
    RxLineCreate,
    RxLineUpdate,
)
from app.services import payment_gate as gate_service
from app.services.directory import Directory
from app.services.payment_gate import PaymentGate
from app.services.inventory import get_active_batches
from app.services.pricing import Availability, require

logger = logging.getLogger(__name__)

# ---------- helpers ----------


def _commit(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        raise ConcurrencyConflictError(
            "Prescription was modified by another request, please retry.")
    except IntegrityError:
        db.rollback()
        raise ConflictError(
            "This medication is already included in the prescription")


def _rx_query(db: Session):
    return db.query(Prescription).options(
        selectinload(Prescription.lines).selectinload(
            PrescriptionLine.dispense_records))


def get_prescription(db: Session, rx_id: int) -> Prescription:
    rx = _rx_query(db).filter(Prescription.id == rx_id).first()
    if not rx:
        raise NotFoundError("Prescription not found",
                            details={"prescription_id": rx_id})
    return rx


def _ensure_pending(rx: Prescription, action: str) -> None:
    if not rx.is_pending:
        raise InvalidStateError(
            f"Cannot {action} a non-pending prescription",
            current_status=rx.status,
        )


def _append_note(existing: Optional[str], note: str) -> str:
    return f"{existing or ''}\n{note}".strip()


def _line_from_quote(quote: Availability, data: RxLineCreate) -> PrescriptionLine:
    return PrescriptionLine(
        medication_id=quote.medication.id,
        quantity=data.quantity,
        unit_price=quote.unit_price,
        total_price=quote.line_total,
        dosage=data.dosage,
        frequency=data.frequency,
        duration=data.duration,
        instructions=data.instructions,
        is_paid=False,
    )


# ---------- Rx CRUD ----------


def create_prescription(
    db: Session,
    data: PrescriptionCreate,
    directory: Directory,
) -> Prescription:
    """
    Prices every line against live stock and creates the prescription in one
    go. Any line that cannot be fulfilled fails the whole call; stock is
    checked, not reserved.
    """
    if not directory.patient_exists(db, data.patient_id):
        raise DirectoryLookupError("Patient not found",
                                   details={"patient_id": data.patient_id})
    if not directory.prescriber_exists(db, data.prescriber_id):
        raise DirectoryLookupError(
            "Prescriber not found or not authorized to write prescriptions",
            details={"prescriber_id": data.prescriber_id},
        )

    seen = set()
    quotes: List[tuple[Availability, RxLineCreate]] = []
    for line_data in data.lines:
        if line_data.medication_id in seen:
            raise ConflictError(
                "This medication is already included in the prescription",
                details={"medication_id": line_data.medication_id},
            )
        seen.add(line_data.medication_id)
        quotes.append((require(db, line_data.medication_id,
                               line_data.quantity), line_data))

    total = sum((q.line_total for q, _ in quotes), Decimal("0.00"))

    rx = Prescription(
        patient_id=data.patient_id,
        prescriber_id=data.prescriber_id,
        prescription_date=datetime.utcnow(),
        status=PrescriptionStatus.PENDING.value,
        total_amount=total,
        balance=total,
        notes=data.notes,
    )
    rx.lines = [_line_from_quote(q, line_data) for q, line_data in quotes]
    db.add(rx)
    _commit(db)

    logger.info("Prescription %s created for patient %s: %s line(s), total %s",
                rx.id, rx.patient_id, len(rx.lines), total)
    return get_prescription(db, rx.id)


def list_prescriptions(
    db: Session,
    *,
    patient_id: Optional[int] = None,
    prescriber_id: Optional[int] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[Prescription]:
    q = db.query(Prescription)
    if patient_id:
        q = q.filter(Prescription.patient_id == patient_id)
    if prescriber_id:
        q = q.filter(Prescription.prescriber_id == prescriber_id)
    if status:
        q = q.filter(Prescription.status == status.upper())
    if date_from:
        q = q.filter(Prescription.prescription_date >= datetime.combine(date_from, time.min))
    if date_to:
        q = q.filter(Prescription.prescription_date <= datetime.combine(date_to, time.max))
    return (q.order_by(Prescription.prescription_date.desc(),
                       Prescription.id.desc()).offset(offset).limit(limit).all())


def update_prescription(db: Session, rx_id: int, data: PrescriptionUpdate) -> Prescription:
    rx = get_prescription(db, rx_id)
    _ensure_pending(rx, "update")

    if data.notes is not None:
        rx.notes = data.notes

    _commit(db)
    db.refresh(rx)
    return rx


def cancel_prescription(db: Session, rx_id: int, reason: Optional[str] = None) -> Prescription:
    rx = get_prescription(db, rx_id)

    if rx.status == PrescriptionStatus.DISPENSED.value:
        raise InvalidStateError("Cannot cancel a dispensed prescription",
                                current_status=rx.status)
    if rx.status == PrescriptionStatus.CANCELLED.value:
        raise InvalidStateError("Prescription is already cancelled",
                                current_status=rx.status)

    rx.status = PrescriptionStatus.CANCELLED.value
    rx.cancelled_at = datetime.utcnow()
    if reason:
        rx.notes = _append_note(rx.notes, f"Cancelled: {reason}")

    _commit(db)
    db.refresh(rx)
    logger.info("Prescription %s cancelled", rx.id)
    return rx


# ---------- Rx lines ----------


def add_line(db: Session, rx_id: int, line_data: RxLineCreate) -> PrescriptionLine:
    rx = get_prescription(db, rx_id)
    _ensure_pending(rx, "add medications to")

    if any(l.medication_id == line_data.medication_id for l in rx.lines):
        raise ConflictError(
            "This medication is already included in the prescription",
            details={"medication_id": line_data.medication_id},
        )

    quote = require(db, line_data.medication_id, line_data.quantity)
    line = _line_from_quote(quote, line_data)
    rx.lines.append(line)

    rx.total_amount = Decimal(str(rx.total_amount or 0)) + line.total_price
    rx.balance = Decimal(str(rx.balance or 0)) + line.total_price
    gate_service.sync_invoice_total(db, rx)

    _commit(db)
    db.refresh(line)
    logger.info("Prescription %s: added medication %s x%s at %s",
                rx.id, line.medication_id, line.quantity, line.unit_price)
    return line


def _get_line(rx: Prescription, line_id: int) -> PrescriptionLine:
    for line in rx.lines:
        if line.id == line_id:
            return line
    raise NotFoundError("Prescription medication not found",
                        details={"prescription_id": rx.id, "line_id": line_id})


def update_line(db: Session, rx_id: int, line_id: int, data: RxLineUpdate) -> PrescriptionLine:
    rx = get_prescription(db, rx_id)
    line = _get_line(rx, line_id)
    _ensure_pending(rx, "update medications in")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(line, field, value)

    _commit(db)
    db.refresh(line)
    return line


def remove_line(db: Session, rx_id: int, line_id: int) -> dict:
    rx = get_prescription(db, rx_id)
    line = _get_line(rx, line_id)
    _ensure_pending(rx, "remove medications from")

    # back out the snapshotted amount, never a re-quoted one
    amount = Decimal(str(line.total_price or 0))
    rx.total_amount = Decimal(str(rx.total_amount or 0)) - amount
    rx.balance = Decimal(str(rx.balance or 0)) - amount
    gate_service.sync_invoice_total(db, rx)
    rx.lines.remove(line)

    _commit(db)
    logger.info("Prescription %s: removed line %s (%s)", rx.id, line_id, amount)
    return {
        "prescription_id": rx.id,
        "line_id": line_id,
        "message": "Medication removed from prescription successfully",
    }


# ---------- Availability / billing views ----------


def check_availability(db: Session, rx_id: int) -> dict:
    """
    Per-line stock check against the active batches, the same batches a
    dispense would draw from. A medication deactivated after the line was
    written is still reported, not rejected.
    """
    rx = get_prescription(db, rx_id)

    per_line = []
    for line in rx.lines:
        available = sum(
            int(b.available_quantity or 0)
            for b in get_active_batches(db, line.medication_id))
        per_line.append({
            "line_id": line.id,
            "medication_id": line.medication_id,
            "medication_name": line.medication.name if line.medication else "",
            "required": line.quantity,
            "available": available,
            "can_fulfill": available >= line.quantity,
        })

    return {
        "prescription_id": rx.id,
        "per_line": per_line,
        "can_dispense_all": all(p["can_fulfill"] for p in per_line),
    }


def create_invoice(db: Session, rx_id: int, created_by: Optional[int] = None) -> Invoice:
    rx = get_prescription(db, rx_id)
    return gate_service.create_invoice_for_prescription(db, rx, created_by)


def get_payment_status(db: Session, rx_id: int) -> dict:
    rx = get_prescription(db, rx_id)
    return gate_service.payment_status(db, rx)


def list_ready_to_dispense(db: Session, gate: PaymentGate) -> List[Prescription]:
    """PENDING prescriptions with at least one line and nothing left to pay."""
    pending = (_rx_query(db).filter(
        Prescription.status == PrescriptionStatus.PENDING.value).order_by(
            Prescription.prescription_date.desc()).all())
    return [
        rx for rx in pending
        if rx.lines and gate.get_outstanding_balance(db, rx.id) <= 0
    ]
