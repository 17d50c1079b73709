# FILE: app/models/billing.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    Date,
    DateTime,
    Index,
    ForeignKey,
    UniqueConstraint,
    Text,
)
from sqlalchemy.orm import relationship

from app.db.base import Base


class Invoice(Base):
    """
    Billing invoice, as far as pharmacy needs to see it.

    Payments are posted by the billing module; pharmacy only raises the
    invoice for a prescription and reads how much of it is still due.

    Use:
    - context_type + context_id: link to the prescription
      (context_type = "pharmacy_prescription")
    - billing_type: UI filter ("pharmacy")
    """

    __tablename__ = "billing_invoices"
    __table_args__ = (
        Index("ix_billing_invoices_patient_ctx", "patient_id", "context_type",
              "context_id"),
        UniqueConstraint("context_type",
                         "context_id",
                         name="uq_billing_invoice_context"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # Invoice number visible in print (INV-YYYYMMDD-0001)
    invoice_number = Column(String(32), unique=True, index=True, nullable=False)

    patient_id = Column(
        Integer,
        ForeignKey("patients.id"),
        nullable=False,
        index=True,
    )

    context_type = Column(String(32), nullable=False)
    context_id = Column(Integer, nullable=False)
    billing_type = Column(String(20), nullable=False, default="pharmacy")

    status = Column(String(16), default="draft")  # draft | finalized | paid | cancelled

    net_total = Column(Numeric(12, 2), nullable=False, default=0)
    # Money actually paid against this invoice (all payment rows, net of refunds)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance_due = Column(Numeric(12, 2), nullable=False, default=0)

    due_date = Column(Date, nullable=True)
    remarks = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(
        DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
    )

    patient = relationship("Patient")
