# FILE: app/services/payment_gate.py
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import ConflictError, InvalidStateError
from app.models.billing import Invoice
from app.models.pharmacy_prescription import Prescription

logger = logging.getLogger(__name__)

INVOICE_CONTEXT = "pharmacy_prescription"


class PaymentGate(Protocol):
    """
    Billing boundary consulted before dispensing.
    Zero means the prescription is settled.
    """

    def get_outstanding_balance(self, db: Session, prescription_id: int) -> Decimal:
        ...


def find_invoice(db: Session, prescription_id: int) -> Optional[Invoice]:
    return (db.query(Invoice).filter(
        Invoice.context_type == INVOICE_CONTEXT,
        Invoice.context_id == prescription_id,
    ).first())


def outstanding_for(rx: Prescription, invoice: Optional[Invoice]) -> Decimal:
    """
    What is still owed on the prescription as it stands now.

    Lines can be added or removed after the invoice is raised, so the
    prescription total is the amount due, less whatever the invoice has
    collected.
    """
    total = Decimal(str(rx.total_amount or 0))
    paid = Decimal(str(invoice.amount_paid or 0)) if invoice is not None else Decimal("0")
    due = total - paid
    return due if due > 0 else Decimal("0")


class InvoicePaymentGate:
    """
    Default gate: the billing invoice raised for the prescription.
    No invoice yet -> the whole prescription total is outstanding.
    """

    def get_outstanding_balance(self, db: Session, prescription_id: int) -> Decimal:
        rx = db.get(Prescription, prescription_id)
        if rx is None:
            return Decimal("0")
        return outstanding_for(rx, find_invoice(db, prescription_id))


def sync_invoice_total(db: Session, rx: Prescription) -> Optional[Invoice]:
    """
    Keep an open invoice in step with the prescription total after a line
    change. Caller commits.
    """
    invoice = find_invoice(db, rx.id)
    if invoice is None:
        return None

    total = Decimal(str(rx.total_amount or 0))
    invoice.net_total = total
    invoice.balance_due = outstanding_for(rx, invoice)
    if invoice.status == "paid" and invoice.balance_due > 0:
        invoice.status = "finalized"
    logger.info("Invoice %s re-totalled to %s for prescription %s",
                invoice.invoice_number, total, rx.id)
    return invoice


# ---------- Invoice creation ----------


def _generate_invoice_number(db: Session) -> str:
    """
    INV-YYYYMMDD-<seq>
    """
    today_str = datetime.utcnow().strftime("%Y%m%d")
    prefix = f"INV-{today_str}"
    last = (db.query(Invoice.invoice_number).filter(
        Invoice.invoice_number.like(f"{prefix}-%")).order_by(
            Invoice.invoice_number.desc()).first())
    seq = 1
    if last and last[0]:
        try:
            seq = int(str(last[0]).split("-")[-1]) + 1
        except ValueError:
            seq = 1
    return f"{prefix}-{seq:04d}"


def create_invoice_for_prescription(
    db: Session,
    rx: Prescription,
    created_by: Optional[int] = None,
) -> Invoice:
    """
    1 prescription -> 1 invoice. Amount is the prescription total as priced
    at creation time.
    """
    if not rx.is_pending:
        raise InvalidStateError(
            f"Cannot create invoice for {rx.status.lower()} prescription",
            current_status=rx.status,
        )

    if find_invoice(db, rx.id) is not None:
        raise ConflictError("Invoice already exists for this prescription",
                            details={"prescription_id": rx.id})

    total = Decimal(str(rx.total_amount or 0))
    inv = Invoice(
        invoice_number=_generate_invoice_number(db),
        patient_id=rx.patient_id,
        context_type=INVOICE_CONTEXT,
        context_id=rx.id,
        billing_type="pharmacy",
        status="draft",
        net_total=total,
        amount_paid=Decimal("0"),
        balance_due=total,
        due_date=date.today() + timedelta(days=settings.INVOICE_DUE_DAYS),
        remarks=f"Invoice for prescription {rx.id}",
        created_by=created_by,
    )
    db.add(inv)
    db.commit()
    db.refresh(inv)
    logger.info("Invoice %s created for prescription %s (total %s)",
                inv.invoice_number, rx.id, total)
    return inv


def payment_status(db: Session, rx: Prescription) -> dict:
    invoice = find_invoice(db, rx.id)
    if invoice is None:
        total = Decimal(str(rx.total_amount or 0))
        return {
            "prescription_id": rx.id,
            "prescription_status": rx.status,
            "has_invoice": False,
            "total_amount": total,
            "amount_paid": Decimal("0"),
            "remaining_balance": total,
            "is_fully_paid": total <= 0,
        }

    remaining = outstanding_for(rx, invoice)
    return {
        "prescription_id": rx.id,
        "prescription_status": rx.status,
        "has_invoice": True,
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "total_amount": Decimal(str(rx.total_amount or 0)),
        "amount_paid": Decimal(str(invoice.amount_paid or 0)),
        "remaining_balance": remaining,
        "is_fully_paid": remaining <= 0,
    }
